"""On-demand, citation-constrained analysis of a single chart task."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from pydantic import ValidationError

from research_gantt.errors import AnalysisSemanticError, CompletionResponseError, InputError
from research_gantt.logging import get_logger
from research_gantt.models import AnalysisResult, GroundingContext, TaskIdentifier, TaskStatus
from research_gantt.periods import period_bounds
from research_gantt.prompts.analysis import analysis_prompt, build_user_message
from research_gantt.providers.claude_client import ModelConfig
from research_gantt.reliability.citations import corpus_urls, find_phrase, resolve_citation, safe_url_or_none

logger = get_logger(__name__)

NO_CORPUS_MESSAGE = "No research documents are loaded for this session. Please generate a chart first."


class StructuredCompleter(Protocol):
    async def complete_structured(self, system: str, user: str, schema: dict, config: ModelConfig) -> dict:
        ...


def require_task(task: TaskIdentifier) -> TaskIdentifier:
    task_name = (task.task_name or "").strip()
    entity = (task.entity or "").strip()
    if not task_name or not entity:
        raise InputError("Missing taskName or entity")
    return TaskIdentifier(task_name=task_name, entity=entity)


def require_corpus(context: GroundingContext | None) -> GroundingContext:
    if context is None or not context.corpus.strip():
        raise InputError(NO_CORPUS_MESSAGE)
    return context


def compute_status(start: Optional[str], end: Optional[str], reference: date) -> Optional[TaskStatus]:
    """Status from the task's dates relative to ``reference``; None if a date does not parse."""
    start_span = period_bounds(start or "")
    end_span = period_bounds(end or "")
    if start_span is None or end_span is None:
        return None
    first_day, last_day = start_span[0], end_span[1]
    if last_day < reference:
        return "completed"
    if first_day > reference:
        return "not-started"
    return "in-progress"


def _cite(
    text: str,
    source: str,
    url: Optional[str],
    context: GroundingContext,
    known_urls: set[str],
) -> tuple[str, Optional[str]]:
    source = (source or "").strip()
    resolved = resolve_citation(context.corpus, text)
    if resolved is not None:
        if source and (source, safe_url_or_none(url)) != (resolved.source, resolved.url):
            logger.info("Replacing cited source %r with %r (%s tier)", source, resolved.source, resolved.tier)
        return resolved.source, resolved.url
    if source:
        url = safe_url_or_none(url)
        if url is not None and url not in known_urls:
            logger.warning("Dropping URL not linked anywhere in the corpus: %s", url)
            url = None
        return source, url
    if len(context.filenames) == 1:
        return context.filenames[0], None
    raise AnalysisSemanticError(f"Could not attribute a source for: {text[:120]!r}")


def _missing_narrative(status: Optional[str], result: AnalysisResult) -> Optional[str]:
    if status in ("in-progress", "not-started") and not (result.rationale or "").strip():
        return "rationale"
    if status == "completed" and not (result.summary or "").strip():
        return "summary"
    return None


def finalize_analysis(result: AnalysisResult, context: GroundingContext, reference: date) -> AnalysisResult:
    """Validate sources and URLs, and recompute status where the dates allow it."""
    known_urls = corpus_urls(context.corpus)
    for fact in result.facts:
        fact.source, fact.url = _cite(fact.fact, fact.source, fact.url, context, known_urls)
        if find_phrase(context.corpus, fact.fact) is None:
            logger.warning("Fact is not a verbatim corpus phrase: %r", fact.fact[:120])
    for assumption in result.assumptions:
        assumption.source, assumption.url = _cite(assumption.assumption, assumption.source, assumption.url, context, known_urls)

    status = compute_status(result.start_date, result.end_date, reference)
    if status is not None and status != result.status:
        missing = _missing_narrative(status, result)
        if missing:
            raise AnalysisSemanticError(
                f"Task dates make {result.task_name!r} {status}, but the analysis has no {missing} for that status."
            )
        logger.info("Overriding model status %r with %r for %r", result.status, status, result.task_name)
        result.status = status

    missing = _missing_narrative(result.status, result)
    if missing:
        logger.warning("Analysis for %r has status %s but no %s", result.task_name, result.status, missing)
    return result


async def analyze_task(
    task: TaskIdentifier,
    context: GroundingContext | None,
    client: StructuredCompleter,
    reference_date: date,
) -> AnalysisResult:
    task = require_task(task)
    context = require_corpus(context)
    prompt = analysis_prompt(reference_date)

    raw = await client.complete_structured(
        prompt.system,
        build_user_message(task.task_name, task.entity, context.corpus),
        prompt.schema,
        prompt.config,
    )
    try:
        result = AnalysisResult.model_validate(raw)
    except ValidationError as exc:
        raise CompletionResponseError(f"Task analysis did not match the expected schema: {exc}") from exc
    result = finalize_analysis(result, context, reference_date)
    logger.info(
        "Analyzed task %r (%s): status=%s facts=%d assumptions=%d",
        task.task_name,
        task.entity,
        result.status,
        len(result.facts),
        len(result.assumptions),
    )
    return result
