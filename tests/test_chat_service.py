from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import InvalidArgument
from core.plan_constants import AccountStatus
from services.chat_service import ChatGovernanceService
from services.entitlement_service import REASON_BANNED, REASON_QUOTA
from services.usage_counter import UsageCounter


def _echo(text, history, options):
    return f"echo:{text}:{options.max_response_length}"


@pytest.fixture()
def chat(accounts, clock) -> ChatGovernanceService:
    usage = UsageCounter(accounts, clock=clock, max_retries=500)
    return ChatGovernanceService(accounts, usage=usage, generator=_echo, clock=clock)


def test_allowed_turn_counts_and_replies(chat, make_account, accounts) -> None:
    make_account("u1")

    outcome = chat.handle("u1", "  hello  ")

    assert outcome.allowed
    assert outcome.reply == "echo:hello:500"
    assert outcome.usage_count == 1
    assert accounts.require_account("u1").message_count == {"2024-06": 1}


def test_denied_turn_does_not_count(chat, make_account, accounts) -> None:
    make_account("u1", status=AccountStatus.BANNED)

    outcome = chat.handle("u1", "hello")

    assert not outcome.allowed
    assert outcome.decision.reason == REASON_BANNED
    assert outcome.reply is None
    assert accounts.require_account("u1").message_count == {}


def test_blank_message_is_rejected(chat, make_account) -> None:
    make_account("u1")
    with pytest.raises(InvalidArgument) as exc:
        chat.handle("u1", "   ")
    assert exc.value.code == "chat.invalid_message"


def test_parallel_sessions_cannot_pass_the_free_ceiling(chat, make_account, accounts) -> None:
    make_account("u1", message_count={"2024-06": 49})
    sessions = 16

    with ThreadPoolExecutor(max_workers=sessions) as pool:
        outcomes = list(pool.map(lambda _: chat.handle("u1", "hi"), range(sessions)))

    allowed = [outcome for outcome in outcomes if outcome.allowed]
    assert len(allowed) == 1
    assert allowed[0].usage_count == 50
    assert {outcome.decision.reason for outcome in outcomes if not outcome.allowed} == {REASON_QUOTA}
    assert accounts.require_account("u1").message_count == {"2024-06": 50}
