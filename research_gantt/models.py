"""Data models for charts, task analyses and requests.

Wire names are camelCase (``timeColumns``, ``isSwimlane``, ``startCol``); the
Python attributes are snake_case and every model accepts either form.
"""

from __future__ import annotations

import time
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PALETTE: tuple[str, ...] = (
    "priority-red",
    "medium-red",
    "mid-grey",
    "light-grey",
    "white",
    "dark-blue",
)

TaskStatus = Literal["completed", "in-progress", "not-started", "n/a"]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Grounding corpus
# ---------------------------------------------------------------------------

class GroundingContext(BaseModel):
    corpus: str
    filenames: list[str] = Field(default_factory=list)
    created_at: float = Field(default_factory=time.time)


# ---------------------------------------------------------------------------
# Chart document
# ---------------------------------------------------------------------------

class Bar(_WireModel):
    start_col: Optional[int] = Field(default=None, alias="startCol")
    end_col: Optional[int] = Field(default=None, alias="endCol")
    color: str = PALETTE[0]

    @property
    def is_placed(self) -> bool:
        return self.start_col is not None and self.end_col is not None


class Row(_WireModel):
    title: str
    is_swimlane: bool = Field(alias="isSwimlane")
    entity: str
    bar: Optional[Bar] = None


class LegendItem(_WireModel):
    color: str
    label: str


class ChartDocument(_WireModel):
    title: str
    time_columns: list[str] = Field(alias="timeColumns")
    data: list[Row]
    legend: list[LegendItem] = Field(default_factory=list)

    def tasks(self) -> list[Row]:
        return [row for row in self.data if not row.is_swimlane]


# ---------------------------------------------------------------------------
# Task analysis
# ---------------------------------------------------------------------------

class TaskIdentifier(_WireModel):
    task_name: str = Field(default="", alias="taskName")
    entity: str = ""


class QuestionRequest(TaskIdentifier):
    question: str = ""


class Fact(_WireModel):
    fact: str
    source: str = ""
    url: Optional[str] = None


class Assumption(_WireModel):
    assumption: str
    source: str = ""
    url: Optional[str] = None


class AnalysisResult(_WireModel):
    task_name: str = Field(alias="taskName")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    status: TaskStatus = "n/a"
    facts: list[Fact] = Field(default_factory=list)
    assumptions: list[Assumption] = Field(default_factory=list)
    rationale: Optional[str] = None
    summary: Optional[str] = None


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

class TodayPosition(BaseModel):
    index: int
    percentage: float


class BarPlacement(_WireModel):
    grid_column: str = Field(alias="gridColumn")
    color: str


class RowLayout(_WireModel):
    title: str
    is_swimlane: bool = Field(alias="isSwimlane")
    entity: str
    bar: Optional[BarPlacement] = None
    task: Optional[TaskIdentifier] = None


class TodayMarker(_WireModel):
    index: int
    percentage: float
    left_px: Optional[float] = Field(default=None, alias="leftPx")


class ChartLayout(_WireModel):
    title: str
    column_count: int = Field(alias="columnCount")
    grid_template_columns: str = Field(alias="gridTemplateColumns")
    headers: list[str]
    rows: list[RowLayout]
    legend: list[LegendItem] = Field(default_factory=list)
    today: Optional[TodayMarker] = None
