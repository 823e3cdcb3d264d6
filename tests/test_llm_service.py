import unittest
from unittest.mock import patch

import llm.llm_service as llm_service
from core.errors import UpstreamGenerationFailure
from core.plan_constants import Feature, PriorityClass
from llm.prompts import chat_reply


class DummyMessage:
    def __init__(self, content):
        self.content = content


class DummyChoice:
    def __init__(self, content):
        self.message = DummyMessage(content)


class DummyResponse:
    def __init__(self, content):
        self.choices = [DummyChoice(content)]


def _options(budget=200, priority=PriorityClass.LOW, flags=(Feature.CHAT,), **kwargs):
    return llm_service.GenerationOptions(
        max_response_length=budget,
        priority_class=priority,
        feature_flags=frozenset(flags),
        **kwargs,
    )


def _history(turns):
    return [
        {"role": "user" if index % 2 == 0 else "assistant", "content": f"turn {index}"}
        for index in range(turns)
    ]


class ResponseBudgetTests(unittest.TestCase):
    def test_short_text_is_untouched(self):
        self.assertEqual(llm_service.enforce_response_budget("hello", 200, PriorityClass.LOW), "hello")

    def test_low_priority_truncation_adds_upgrade_hint(self):
        text = "x" * 250
        result = llm_service.enforce_response_budget(text, 200, PriorityClass.LOW)

        self.assertTrue(result.startswith("x" * 197 + "..."))
        self.assertTrue(result.endswith(llm_service.UPGRADE_HINT))
        self.assertEqual(len(result), 200 + len(llm_service.UPGRADE_HINT))

    def test_paid_priority_truncation_has_no_hint(self):
        result = llm_service.enforce_response_budget("y" * 2500, 2000, PriorityClass.MEDIUM)

        self.assertEqual(len(result), 2000)
        self.assertTrue(result.endswith("..."))
        self.assertNotIn("Upgrade", result)


class HistoryWindowTests(unittest.TestCase):
    def test_window_follows_long_context_flag(self):
        self.assertEqual(_options().history_window, 5)
        self.assertEqual(_options(flags=(Feature.CHAT, Feature.LONG_CONTEXT)).history_window, 10)

    def test_prompt_keeps_only_the_latest_turns(self):
        messages = chat_reply.get_prompt(
            "hi",
            _history(12),
            max_length=200,
            priority="low",
            history_window=5,
        )

        self.assertEqual(messages[0]["role"], "system")
        self.assertEqual([m["content"] for m in messages[1:-1]], [f"turn {index}" for index in range(7, 12)])
        self.assertEqual(messages[-1], {"role": "user", "content": "hi"})

    def test_prompt_carries_intent_register_and_name(self):
        messages = chat_reply.get_prompt(
            "Please fix this bug in my function",
            [],
            max_length=8000,
            priority="high",
            history_window=10,
            email="jane@example.com",
        )
        system = messages[0]["content"]

        self.assertIn(chat_reply.INTENT_HINTS["debugging"], system)
        self.assertIn(chat_reply.PRIORITY_REGISTER["high"], system)
        self.assertIn("jane", system)
        self.assertIn("under 8000 characters", system)


class GenerateChatReplyTests(unittest.TestCase):
    def test_reply_is_budgeted_and_uses_window(self):
        captured = {}

        def completion_side_effect(model, messages, timeout=None):
            captured["model"] = model
            captured["messages"] = messages
            captured["timeout"] = timeout
            return DummyResponse("z" * 500)

        with patch("llm.llm_service.litellm.completion", side_effect=completion_side_effect):
            reply = llm_service.generate_chat_reply(
                "hello",
                _history(12),
                _options(flags=(Feature.CHAT, Feature.LONG_CONTEXT), priority=PriorityClass.HIGH, budget=300),
                model="test-model",
                timeout=7,
            )

        self.assertEqual(len(reply), 300)
        self.assertEqual(captured["model"], "test-model")
        self.assertEqual(captured["timeout"], 7)
        self.assertEqual(len(captured["messages"]), 12)

    def test_provider_error_maps_to_upstream_failure(self):
        with patch("llm.llm_service.litellm.completion", side_effect=RuntimeError("boom")):
            with self.assertRaises(UpstreamGenerationFailure) as ctx:
                llm_service.generate_chat_reply("hello", None, _options(), model="test-model")

        detail = ctx.exception.to_detail()
        self.assertTrue(detail["retryable"])
        self.assertEqual(detail["model"], "test-model")
        self.assertEqual(ctx.exception.status_code, 502)

    def test_empty_reply_is_an_upstream_failure(self):
        with patch("llm.llm_service.litellm.completion", return_value=DummyResponse("   ")):
            with self.assertRaises(UpstreamGenerationFailure):
                llm_service.generate_chat_reply("hello", [], _options())

    def test_mapping_responses_are_supported(self):
        payload = {"choices": [{"message": {"content": "mapped reply"}}]}
        with patch("llm.llm_service.litellm.completion", return_value=payload):
            self.assertEqual(llm_service.generate_chat_reply("hello", [], _options()), "mapped reply")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
