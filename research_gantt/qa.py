"""Grounded follow-up questions about one task."""

from __future__ import annotations

from typing import Protocol

from research_gantt.analysis import require_corpus
from research_gantt.errors import InputError
from research_gantt.logging import get_logger
from research_gantt.models import GroundingContext, QuestionRequest
from research_gantt.prompts.question import build_user_message, question_prompt
from research_gantt.providers.claude_client import ModelConfig

logger = get_logger(__name__)

DEFAULT_MAX_QUESTION_CHARS = 1000


class TextCompleter(Protocol):
    async def complete_text(self, system: str, user: str, config: ModelConfig) -> str:
        ...


def validate_question(request: QuestionRequest, max_chars: int = DEFAULT_MAX_QUESTION_CHARS) -> QuestionRequest:
    question = request.question.strip() if isinstance(request.question, str) else ""
    if not question:
        raise InputError("Question is required and must be non-empty")
    if not (request.entity or "").strip():
        raise InputError("Entity is required")
    if not (request.task_name or "").strip():
        raise InputError("Task name is required")
    if len(question) > max_chars:
        raise InputError(f"Question too long (max {max_chars} characters)")
    return QuestionRequest(task_name=request.task_name.strip(), entity=request.entity.strip(), question=question)


async def answer_question(
    request: QuestionRequest,
    context: GroundingContext | None,
    client: TextCompleter,
    max_chars: int = DEFAULT_MAX_QUESTION_CHARS,
) -> str:
    """Answer from the corpus only; the fallback sentence is a normal result."""
    request = validate_question(request, max_chars=max_chars)
    context = require_corpus(context)
    prompt = question_prompt(request.task_name, request.entity)
    answer = await client.complete_text(
        prompt.system,
        build_user_message(request.question, context.corpus),
        prompt.config,
    )
    logger.info("Answered question about %r (%s): %d chars", request.task_name, request.entity, len(answer))
    return answer
