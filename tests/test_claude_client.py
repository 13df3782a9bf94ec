import asyncio

import pytest
from conftest import FakeAnthropic, text_response, tool_response

from research_gantt.errors import CompletionBlockedError, CompletionResponseError, InputError
from research_gantt.providers.claude_client import STRUCTURED_TOOL_NAME, ClaudeClient, ModelConfig
from research_gantt.reliability.retry import linear_backoff, retry_with_backoff

CONFIG = ModelConfig(max_output_tokens=256, temperature=0.0, top_k=1)


def _client(outcomes, sleep, **kwargs):
    fake = FakeAnthropic(outcomes)
    client = ClaudeClient(api_key="sk-test-0000000000", model="claude-test", client=fake, sleep=sleep, **kwargs)
    return client, fake


def test_linear_backoff_grows_with_attempt_number():
    policy = linear_backoff(1.0)
    assert [policy(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]


def test_retry_succeeds_on_third_attempt_with_linear_delays(recording_sleep):
    calls = {"n": 0}

    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("transient")
        return "ok"

    out = asyncio.run(retry_with_backoff(flaky, attempts=3, sleep=recording_sleep))
    assert out == "ok"
    assert calls["n"] == 3
    assert recording_sleep.delays == [1.0, 2.0]


def test_retry_reraises_last_error_unchanged(recording_sleep):
    errors = [TimeoutError("first"), TimeoutError("second"), TimeoutError("third")]

    async def always_fails():
        raise errors.pop(0)

    with pytest.raises(TimeoutError, match="third"):
        asyncio.run(retry_with_backoff(always_fails, attempts=3, sleep=recording_sleep))
    assert recording_sleep.delays == [1.0, 2.0]


def test_input_errors_are_not_retried(recording_sleep):
    calls = {"n": 0}

    async def bad_input():
        calls["n"] += 1
        raise InputError("nope")

    with pytest.raises(InputError):
        asyncio.run(retry_with_backoff(bad_input, attempts=3, sleep=recording_sleep))
    assert calls["n"] == 1
    assert recording_sleep.delays == []


def test_structured_completion_uses_forced_tool_and_sampling(recording_sleep):
    client, fake = _client([tool_response({"title": "Plan"})], recording_sleep)
    out = asyncio.run(client.complete_structured("sys", "user", {"type": "object"}, CONFIG))
    assert out == {"title": "Plan"}
    kwargs = fake.messages.calls[0]
    assert kwargs["tool_choice"] == {"type": "tool", "name": STRUCTURED_TOOL_NAME}
    assert kwargs["tools"][0]["input_schema"] == {"type": "object"}
    assert kwargs["temperature"] == 0.0
    assert kwargs["top_k"] == 1
    assert "top_p" not in kwargs
    assert kwargs["max_tokens"] == 256


def test_structured_completion_retries_invalid_json(recording_sleep):
    client, fake = _client(
        [text_response("not json"), text_response("[1, 2]"), text_response('{"ok": true}')],
        recording_sleep,
    )
    out = asyncio.run(client.complete_structured("sys", "user", {"type": "object"}, CONFIG))
    assert out == {"ok": True}
    assert len(fake.messages.calls) == 3
    assert recording_sleep.delays == [1.0, 2.0]


def test_structured_completion_gives_up_after_three_attempts(recording_sleep):
    client, fake = _client([text_response("nope")] * 3, recording_sleep)
    with pytest.raises(CompletionResponseError):
        asyncio.run(client.complete_structured("sys", "user", {"type": "object"}, CONFIG))
    assert len(fake.messages.calls) == 3


def test_refusal_is_reported_as_blocked(recording_sleep):
    refusal = text_response("", stop_reason="refusal")
    client, _ = _client([refusal] * 3, recording_sleep)
    with pytest.raises(CompletionBlockedError):
        asyncio.run(client.complete_text("sys", "user", CONFIG))


def test_empty_content_is_an_invalid_response(recording_sleep):
    empty = text_response("")
    empty.content = []
    client, _ = _client([empty], recording_sleep, max_attempts=1)
    with pytest.raises(CompletionResponseError, match="Invalid response"):
        asyncio.run(client.complete_text("sys", "user", CONFIG))
    assert recording_sleep.delays == []


def test_transport_errors_are_retried_then_succeed(recording_sleep):
    client, fake = _client([ConnectionError("reset"), text_response("Answer.")], recording_sleep)
    assert asyncio.run(client.complete_text("sys", "user", CONFIG)) == "Answer."
    assert recording_sleep.delays == [1.0]
    assert fake.messages.calls[0]["messages"] == [{"role": "user", "content": "user"}]


def test_backoff_is_configurable(recording_sleep):
    client, _ = _client([ConnectionError("a"), ConnectionError("b"), text_response("x")], recording_sleep, backoff_ms=250)
    asyncio.run(client.complete_text("sys", "user", CONFIG))
    assert recording_sleep.delays == [0.25, 0.5]


def test_usage_is_reported(recording_sleep):
    seen = []
    client, _ = _client([text_response("hi")], recording_sleep, on_usage=seen.append)
    asyncio.run(client.complete_text("sys", "user", CONFIG))
    assert seen[0].input_tokens == 10
    assert seen[0].output_tokens == 5
