"""Marketing catalog of assistant capabilities per subscription tier."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Mapping, Optional

from core.plan_constants import SubscriptionTier

CatalogEntry = Dict[str, Any]


def _on(limit: str) -> CatalogEntry:
    return {"enabled": True, "limit": limit}


def _off(limit: str) -> CatalogEntry:
    return {"enabled": False, "limit": limit}


FEATURE_CATALOG: Mapping[SubscriptionTier, Mapping[str, CatalogEntry]] = {
    SubscriptionTier.FREE: {
        "codeGeneration": _on("Basic code snippets"),
        "codeCompletion": _off("Pro feature"),
        "debugging": _on("Basic debugging help"),
        "codeExplanation": _on("Simple explanations"),
        "codeRefactoring": _off("Pro feature"),
        "syntaxCorrection": _on("Basic syntax help"),
        "testGeneration": _off("Plus feature"),
        "codeReview": _off("Pro feature"),
        "apiUsage": _on("Basic API examples"),
        "documentation": _on("Simple documentation"),
        "languageTranslation": _off("Pro feature"),
        "writing": _on("Basic writing assistance"),
        "translation": _on("3 languages"),
        "dataAnalysis": _off("Plus feature"),
        "summarization": _on("Short summaries"),
    },
    SubscriptionTier.PRO: {
        "codeGeneration": _on("Advanced code generation"),
        "codeCompletion": _on("Intelligent completion"),
        "debugging": _on("Advanced debugging"),
        "codeExplanation": _on("Detailed explanations"),
        "codeRefactoring": _on("Code optimization"),
        "syntaxCorrection": _on("Advanced syntax help"),
        "testGeneration": _on("Unit tests"),
        "codeReview": _on("Comprehensive reviews"),
        "apiUsage": _on("Advanced API integration"),
        "documentation": _on("Professional docs"),
        "languageTranslation": _on("10+ languages"),
        "writing": _on("Professional writing"),
        "translation": _on("20+ languages"),
        "dataAnalysis": _on("Basic analytics"),
        "summarization": _on("Detailed summaries"),
        "deployment": _on("Deployment guidance"),
        "regex": _on("Pattern generation"),
    },
    SubscriptionTier.PLUS: {
        "codeGeneration": _on("Production-ready code"),
        "codeCompletion": _on("AI-powered completion"),
        "debugging": _on("Expert debugging"),
        "codeExplanation": _on("In-depth analysis"),
        "codeRefactoring": _on("Enterprise refactoring"),
        "syntaxCorrection": _on("Multi-language support"),
        "testGeneration": _on("Comprehensive test suites"),
        "codeReview": _on("Expert code reviews"),
        "apiUsage": _on("Custom integrations"),
        "documentation": _on("Technical documentation"),
        "languageTranslation": _on("All programming languages"),
        "writing": _on("Expert writing assistance"),
        "translation": _on("All world languages"),
        "dataAnalysis": _on("Advanced analytics"),
        "summarization": _on("Executive summaries"),
        "deployment": _on("DevOps automation"),
        "regex": _on("Complex pattern matching"),
        "database": _on("Database design & queries"),
        "security": _on("Security audits"),
        "performance": _on("Performance optimization"),
        "architecture": _on("System architecture"),
    },
}


def catalog_for(tier: Optional[str]) -> tuple[Optional[SubscriptionTier], Dict[str, Any]]:
    """Catalog of one tier, or of every tier when ``tier`` is missing or unknown."""

    key = str(tier or "").strip().lower()
    try:
        resolved = SubscriptionTier(key)
    except ValueError:
        return None, {item.value: deepcopy(dict(entries)) for item, entries in FEATURE_CATALOG.items()}
    return resolved, deepcopy(dict(FEATURE_CATALOG[resolved]))


__all__ = ["FEATURE_CATALOG", "catalog_for"]
