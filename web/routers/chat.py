"""Governed chat route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.errors import GovernanceError
from schemas.api.chat import ChatRequest, ChatResponse, ChatUsage
from services.chat_service import ChatGovernanceService
from web.deps import denial_error, get_account_id, get_chat_service, http_error

router = APIRouter(tags=["Chat"])


@router.post("/chat", response_model=ChatResponse, summary="Check entitlements, count usage and generate a reply.")
def post_chat(
    payload: ChatRequest,
    account_id: str = Depends(get_account_id),
    service: ChatGovernanceService = Depends(get_chat_service),
) -> ChatResponse:
    history = [turn.model_dump() for turn in payload.chatHistory]
    try:
        outcome = service.handle(account_id, payload.message, history)
    except GovernanceError as exc:
        raise http_error(exc) from exc
    if not outcome.allowed:
        raise denial_error(outcome.decision)

    decision = outcome.decision
    remaining = decision.remaining
    if decision.limit is not None and outcome.usage_count is not None:
        remaining = max(decision.limit - outcome.usage_count, 0)
    return ChatResponse(
        message=outcome.reply or "",
        maxResponseLength=decision.response_budget_chars,
        priorityClass=decision.priority_class.value,
        featureFlags=sorted(flag.value for flag in decision.feature_flags),
        usage=ChatUsage(
            messageCount=outcome.usage_count or 0,
            limit=decision.limit,
            remaining=remaining,
        ),
    )
