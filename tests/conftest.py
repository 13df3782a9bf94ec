from types import SimpleNamespace

import pytest

from research_gantt.models import GroundingContext


def text_response(text, stop_reason="end_turn"):
    return SimpleNamespace(
        id="msg_test",
        stop_reason=stop_reason,
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def tool_response(payload, stop_reason="tool_use"):
    return SimpleNamespace(
        id="msg_test",
        stop_reason=stop_reason,
        content=[SimpleNamespace(type="tool_use", name="emit_result", input=payload)],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


class FakeMessages:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeAnthropic:
    def __init__(self, outcomes):
        self.messages = FakeMessages(outcomes)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class StubCompleter:
    """Stands in for ClaudeClient at the pipeline level."""

    def __init__(self, structured=None, text=None):
        self.structured = structured
        self.text = text
        self.calls = []

    async def complete_structured(self, system, user, schema, config):
        self.calls.append(("structured", system, user, schema, config))
        return self.structured

    async def complete_text(self, system, user, config):
        self.calls.append(("text", system, user, config))
        return self.text


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def corpus_context():
    corpus = (
        "\n\n--- Start of file: market.md ---\n"
        "The pilot launched in March 2025 across three regions.\n\n"
        "Adoption reached 40% by June, per the [Quarterly Review](https://example.com/q2).\n"
        "--- End of file: market.md ---\n"
        "\n\n--- Start of file: policy.docx ---\n"
        '<p>Regulators require approval before Q3 2025, see <a href="https://regs.example.org/rule">Rule 12</a>.</p>'
        "\n--- End of file: policy.docx ---\n"
    )
    return GroundingContext(corpus=corpus, filenames=["market.md", "policy.docx"])
