"""LLM interaction helpers for governed chat replies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, cast

import litellm

from core.env import env_float, env_str
from core.errors import UpstreamGenerationFailure
from core.logging import get_logger
from core.plan_constants import Feature, PriorityClass
from llm.prompts import chat_reply

logger = get_logger(__name__)

CHAT_MODEL = env_str("LLM_CHAT_MODEL", "gemini/gemini-1.5-flash") or "gemini/gemini-1.5-flash"
CHAT_TIMEOUT_SECONDS = env_float("LLM_CHAT_TIMEOUT_SECONDS", 30.0, minimum=1.0)

DEFAULT_HISTORY_WINDOW = 5
LONG_CONTEXT_HISTORY_WINDOW = 10
TRUNCATION_SUFFIX = "..."
UPGRADE_HINT = "\n\nUpgrade to Pro for longer, more detailed responses!"


@dataclass(frozen=True)
class GenerationOptions:
    """Quality-of-service parameters shaped from an entitlement decision."""

    max_response_length: int
    priority_class: PriorityClass
    feature_flags: frozenset
    display_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def history_window(self) -> int:
        if Feature.LONG_CONTEXT in self.feature_flags:
            return LONG_CONTEXT_HISTORY_WINDOW
        return DEFAULT_HISTORY_WINDOW


def _choice_content(response: Any) -> str:
    """Best-effort extraction of the first choice's message content from litellm responses."""
    response_any = cast(Any, response)
    choices = getattr(response_any, "choices", None)
    if choices is None and isinstance(response_any, Mapping):
        choices = response_any.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first_choice = choices[0]
    message = getattr(first_choice, "message", None)
    if message is None and isinstance(first_choice, Mapping):
        message = first_choice.get("message")
    if message is None:
        return ""
    if isinstance(message, Mapping):
        content = message.get("content")
    else:
        content = getattr(message, "content", None)
    return content if isinstance(content, str) else ""


def enforce_response_budget(text: str, max_length: int, priority: PriorityClass) -> str:
    """Cut ``text`` to ``max_length`` characters; low-priority cuts get an upgrade hint."""

    if max_length <= 0 or len(text) <= max_length:
        return text
    cut = max(max_length - len(TRUNCATION_SUFFIX), 0)
    truncated = text[:cut] + TRUNCATION_SUFFIX
    if priority == PriorityClass.LOW:
        truncated += UPGRADE_HINT
    return truncated


def _completion(model: str, messages: List[Dict[str, Any]], timeout: float) -> Any:
    try:
        return litellm.completion(model=model, messages=messages, timeout=timeout)
    except Exception as exc:
        logger.warning("LLM call failed for %s: %s", model, exc, exc_info=True)
        raise UpstreamGenerationFailure(
            "The assistant is temporarily unavailable. Please try again.",
            extra={"model": model},
        ) from exc


def generate_chat_reply(
    message: str,
    history: Optional[Iterable[Mapping[str, Any]]],
    options: GenerationOptions,
    *,
    model: Optional[str] = None,
    timeout: Optional[float] = None,
) -> str:
    """Generate one reply within the caller's response budget.

    Provider errors and empty completions raise ``UpstreamGenerationFailure``.
    """

    turns: Sequence[Mapping[str, Any]] = [turn for turn in (history or []) if isinstance(turn, Mapping)]
    messages = chat_reply.get_prompt(
        message,
        turns,
        max_length=options.max_response_length,
        priority=options.priority_class.value,
        history_window=options.history_window,
        display_name=options.display_name,
        email=options.email,
    )
    resolved_model = model or CHAT_MODEL
    response = _completion(resolved_model, messages, timeout or CHAT_TIMEOUT_SECONDS)
    content = _choice_content(response).strip()
    if not content:
        logger.warning("LLM returned an empty reply for %s.", resolved_model)
        raise UpstreamGenerationFailure(
            "The assistant returned an empty reply. Please try again.",
            extra={"model": resolved_model},
        )
    return enforce_response_budget(content, options.max_response_length, options.priority_class)


__all__ = [
    "CHAT_MODEL",
    "GenerationOptions",
    "enforce_response_budget",
    "generate_chat_reply",
]
