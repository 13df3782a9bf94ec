"""Chart synthesis: one structured completion plus deterministic clean-up."""

from __future__ import annotations

from collections import OrderedDict
from typing import Protocol

from pydantic import ValidationError

from research_gantt.errors import ChartSemanticError, CompletionResponseError, InputError
from research_gantt.logging import get_logger
from research_gantt.models import PALETTE, Bar, ChartDocument, GroundingContext, Row
from research_gantt.periods import detect_granularity, interval_for_span, period_bounds
from research_gantt.prompts.chart import CHART_PROMPT, build_user_message
from research_gantt.providers.claude_client import ModelConfig

logger = get_logger(__name__)

NO_TASKS_MESSAGE = (
    "The AI was unable to find any tasks or time columns in the provided documents. "
    "Please check your files or try a different prompt."
)
BLANK_COLUMN_MESSAGE = "The generated chart has an unlabeled time column. Please try generating the chart again."


class StructuredCompleter(Protocol):
    async def complete_structured(self, system: str, user: str, schema: dict, config: ModelConfig) -> dict:
        ...


def _normalize_bar(bar: Bar | None, n_cols: int) -> Bar:
    if bar is None:
        return Bar(start_col=None, end_col=None, color=PALETTE[0])
    color = bar.color if bar.color in PALETTE else PALETTE[0]
    start, end = bar.start_col, bar.end_col
    if start is None or end is None:
        return Bar(start_col=None, end_col=None, color=color)
    start = min(max(start, 1), n_cols)
    end = min(max(end, start + 1), n_cols + 1)
    return Bar(start_col=start, end_col=end, color=color)


def _check_columns(columns: list[str]) -> None:
    granularity = detect_granularity(columns[0])
    if granularity is None:
        logger.warning("Unrecognized time column format: %r", columns[0])
        return
    mixed = [c for c in columns if detect_granularity(c) != granularity]
    if mixed:
        logger.warning("Time columns mix granularities: %s", mixed[:5])
        return
    first, last = period_bounds(columns[0]), period_bounds(columns[-1])
    if first and last and interval_for_span(first[0], last[1]) != granularity:
        logger.info(
            "Chart uses %s buckets for a %s-sized horizon (%s to %s)",
            granularity,
            interval_for_span(first[0], last[1]),
            columns[0],
            columns[-1],
        )


def normalize_chart(doc: ChartDocument) -> ChartDocument:
    """Enforce swimlane grouping and half-open bar bounds on a model-produced chart.

    Raises ChartSemanticError when a time column is blank or when there are no columns or tasks.
    """
    columns = [c.strip() for c in doc.time_columns]
    if not columns or not doc.tasks():
        raise ChartSemanticError(NO_TASKS_MESSAGE)
    if not all(columns):
        raise ChartSemanticError(BLANK_COLUMN_MESSAGE)
    _check_columns(columns)

    lanes: OrderedDict[str, str] = OrderedDict()
    tasks: OrderedDict[str, list[Row]] = OrderedDict()
    for row in doc.data:
        entity = (row.entity or "").strip() or row.title
        if row.is_swimlane:
            lanes.setdefault(entity, row.title)
            tasks.setdefault(entity, [])
            continue
        if entity not in lanes:
            logger.info("Synthesizing swimlane %r for orphan task %r", entity, row.title)
            lanes[entity] = entity
            tasks.setdefault(entity, [])
        tasks[entity].append(
            Row(title=row.title, is_swimlane=False, entity=entity, bar=_normalize_bar(row.bar, len(columns)))
        )

    data: list[Row] = []
    for entity, title in lanes.items():
        lane_tasks = tasks.get(entity) or []
        if not lane_tasks:
            logger.info("Dropping empty swimlane %r", title)
            continue
        data.append(Row(title=title, is_swimlane=True, entity=entity))
        data.extend(lane_tasks)

    legend = [item for item in doc.legend if item.color in PALETTE and item.label.strip()]
    return ChartDocument(title=doc.title, time_columns=columns, data=data, legend=legend)


async def synthesize_chart(instruction: str, context: GroundingContext | None, client: StructuredCompleter) -> ChartDocument:
    instruction = (instruction or "").strip()
    if not instruction:
        raise InputError("Please provide project instructions in the prompt.")
    if context is None or not context.corpus.strip():
        raise InputError("Please upload at least one research document.")

    raw = await client.complete_structured(
        CHART_PROMPT.system,
        build_user_message(instruction, context.corpus),
        CHART_PROMPT.schema,
        CHART_PROMPT.config,
    )
    if not raw.get("timeColumns") or not raw.get("data"):
        raise ChartSemanticError(NO_TASKS_MESSAGE)
    try:
        doc = ChartDocument.model_validate(raw)
    except ValidationError as exc:
        raise CompletionResponseError(f"Chart data did not match the expected schema: {exc}") from exc
    chart = normalize_chart(doc)
    logger.info(
        "Synthesized chart %r: %d columns, %d rows, %d legend entries (%s)",
        chart.title,
        len(chart.time_columns),
        len(chart.data),
        len(chart.legend),
        CHART_PROMPT.tag,
    )
    return chart
