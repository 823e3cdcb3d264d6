"""Prompt template for MindBot chat replies."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

PERSONA = (
    "You are MindBot AI, an advanced AI assistant with extensive capabilities across development, "
    "writing, analysis, and creative tasks."
)

INTENT_PATTERNS: Dict[str, re.Pattern[str]] = {
    "codeGeneration": re.compile(r"(?:write|create|generate|build).{0,20}(?:code|function|class|component|script|program)", re.I),
    "debugging": re.compile(r"(?:debug|fix|error|bug|troubleshoot|why.{0,10}not.{0,10}work)", re.I),
    "codeExplanation": re.compile(r"(?:explain|what does|how does|understand).{0,20}(?:code|function|this)", re.I),
    "codeRefactoring": re.compile(r"(?:refactor|improve|optimize|clean up|rewrite)", re.I),
    "testGeneration": re.compile(r"(?:test|unit test|testing|test case)", re.I),
    "documentation": re.compile(r"(?:document|docs|documentation|comment|readme)", re.I),
    "languageTranslation": re.compile(
        r"(?:convert|translate|port).{0,20}(?:from|to).{0,10}(?:python|java|javascript|c\+\+|php|ruby|go|rust|kotlin|swift)",
        re.I,
    ),
    "writing": re.compile(r"(?:write|draft|create).{0,20}(?:email|document|report|article|blog|content)", re.I),
    "dataAnalysis": re.compile(r"(?:analyze|analysis|data|chart|graph|statistics)", re.I),
}

INTENT_HINTS: Dict[str, str] = {
    "codeGeneration": "Focus on generating clean, efficient, well-documented code. Include explanations and best practices.",
    "debugging": "Provide systematic debugging assistance. Identify potential issues, suggest fixes, and explain root causes.",
    "codeExplanation": "Provide clear, line-by-line code explanations with context about purpose and functionality.",
    "codeRefactoring": "Suggest improvements for code quality, performance, readability, and maintainability.",
    "testGeneration": "Generate comprehensive test cases including edge cases, unit tests, and integration tests.",
    "documentation": "Create clear, comprehensive documentation with examples and usage instructions.",
    "languageTranslation": "Accurately convert code between programming languages while maintaining functionality.",
    "writing": "Focus on creating well-structured, professional content with appropriate tone and formatting.",
    "dataAnalysis": "Provide thorough data analysis with insights, patterns, and actionable recommendations.",
}

PRIORITY_REGISTER: Dict[str, str] = {
    "high": (
        "You are in premium mode: provide comprehensive, expert-level responses with advanced insights, "
        "multiple approaches, and production-ready solutions."
    ),
    "medium": "You are in pro mode: provide detailed responses with good examples, explanations, and practical solutions.",
    "low": "Provide helpful and accurate responses. Keep responses informative but concise.",
}


def detect_intents(message: str) -> List[str]:
    return [name for name, pattern in INTENT_PATTERNS.items() if pattern.search(message or "")]


def _address_line(display_name: Optional[str], email: Optional[str]) -> Optional[str]:
    name = (display_name or "").strip()
    if not name and email:
        name = email.split("@", 1)[0].strip()
    if not name:
        return None
    return f"The user's name is {name}. Address them by name when appropriate."


def _history_messages(history: Sequence[Mapping[str, Any]], window: int) -> List[dict]:
    messages: List[dict] = []
    for turn in list(history)[-window:] if window > 0 else []:
        content = str(turn.get("content") or "").strip()
        if not content:
            continue
        role = "user" if turn.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": content})
    return messages


def get_prompt(
    message: str,
    history: Sequence[Mapping[str, Any]],
    *,
    max_length: int,
    priority: str,
    history_window: int,
    display_name: Optional[str] = None,
    email: Optional[str] = None,
) -> List[dict]:
    lines = [PERSONA]
    address = _address_line(display_name, email)
    if address:
        lines.append(address)
    lines.extend(INTENT_HINTS[name] for name in detect_intents(message))
    lines.append(PRIORITY_REGISTER.get(priority, PRIORITY_REGISTER["low"]))
    if max_length > 0:
        lines.append(f"Please keep your response under {max_length} characters while being helpful and complete.")

    return [
        {"role": "system", "content": " ".join(lines)},
        *_history_messages(history, history_window),
        {"role": "user", "content": message},
    ]


__all__ = ["detect_intents", "get_prompt"]
