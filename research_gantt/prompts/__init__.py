"""Prompt units: each use-site versions its instruction, schema and sampling together."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from research_gantt.providers.claude_client import ModelConfig

ESCAPE_REMINDER = (
    "**CRITICAL REMINDER:** You MUST escape all newlines (\\n) and double-quotes (\\\") "
    "found in the research content before placing them into the final JSON string values."
)


@dataclass(frozen=True)
class PromptSpec:
    name: str
    version: str
    system: str
    config: ModelConfig
    schema: Optional[dict[str, Any]] = field(default=None)

    @property
    def tag(self) -> str:
        return f"{self.name}@{self.version}"
