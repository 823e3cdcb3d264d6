"""Governed chat turns: entitlement check, usage accounting, then generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from core.errors import InvalidArgument, QuotaExceeded, StoreUnavailable
from core.logging import get_logger
from core.plan_constants import Feature
from llm.llm_service import GenerationOptions, generate_chat_reply
from services.account_store import AccountStore, utcnow
from services.entitlement_service import REASON_STORE, EntitlementDecision, EntitlementResolver
from services.usage_counter import UsageCounter, month_key

logger = get_logger(__name__)

MAX_MESSAGE_CHARS = 8000

ReplyGenerator = Callable[[str, Optional[Iterable[Mapping[str, Any]]], GenerationOptions], str]


@dataclass(frozen=True)
class ChatOutcome:
    decision: EntitlementDecision
    reply: Optional[str] = None
    usage_count: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


def _validate_message(message: Any) -> str:
    if not isinstance(message, str) or not message.strip():
        raise InvalidArgument("Message is required.", code="chat.invalid_message")
    if len(message) > MAX_MESSAGE_CHARS:
        raise InvalidArgument(
            f"Message must be at most {MAX_MESSAGE_CHARS} characters.",
            code="chat.message_too_long",
        )
    return message.strip()


class ChatGovernanceService:
    """Server-side enforcement path for the chat endpoint.

    Usage is incremented after the entitlement check and before generation. The
    monthly ceiling is enforced again inside the increment itself. A failed
    generation keeps its increment, so client retries count again.
    """

    def __init__(
        self,
        accounts: AccountStore,
        *,
        resolver: Optional[EntitlementResolver] = None,
        usage: Optional[UsageCounter] = None,
        generator: ReplyGenerator = generate_chat_reply,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._accounts = accounts
        self._clock = clock
        self._resolver = resolver or EntitlementResolver(accounts, clock=clock)
        self._usage = usage or UsageCounter(accounts, clock=clock)
        self._generator = generator

    def handle(
        self,
        account_id: str,
        message: Any,
        chat_history: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> ChatOutcome:
        text = _validate_message(message)
        try:
            account = self._accounts.require_account(account_id)
        except StoreUnavailable as exc:
            logger.warning("Chat for %s denied: store unavailable (%s).", account_id, exc.code)
            return ChatOutcome(
                decision=EntitlementDecision(
                    allowed=False,
                    response_budget_chars=0,
                    reason=REASON_STORE,
                    message="Account data is temporarily unavailable. Please retry shortly.",
                )
            )

        now = self._clock()
        usage_count = UsageCounter.count_for(account, month_key(now))
        decision = self._resolver.resolve(account, Feature.CHAT, usage_count, now)
        if not decision.allowed:
            logger.info("Chat denied for %s: %s", account_id, decision.reason)
            return ChatOutcome(decision=decision)

        try:
            new_count = self._usage.increment(account_id, limit=decision.limit)
        except QuotaExceeded as exc:
            decision = self._resolver.resolve(account, Feature.CHAT, exc.usage_count, now)
            logger.info("Chat denied for %s at write time: %s", account_id, decision.reason)
            return ChatOutcome(decision=decision)
        options = GenerationOptions(
            max_response_length=decision.response_budget_chars,
            priority_class=decision.priority_class,
            feature_flags=decision.feature_flags,
            display_name=account.display_name,
            email=account.email,
        )
        reply = self._generator(text, chat_history, options)
        return ChatOutcome(decision=decision, reply=reply, usage_count=new_count)


__all__ = ["ChatGovernanceService", "ChatOutcome", "MAX_MESSAGE_CHARS"]
