"""Exception hierarchy shared by the pipeline and the HTTP layer."""

from __future__ import annotations


class ResearchGanttError(Exception):
    """Base class; ``status_code`` is the HTTP status the API maps it to."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(ResearchGanttError):
    """Caller supplied something unusable; never reaches the completion step."""

    status_code = 400


class ExtractionError(ResearchGanttError):
    """An uploaded file could not be decoded or converted."""

    status_code = 500


class CompletionError(ResearchGanttError):
    """The completion capability failed or returned an unusable response."""

    status_code = 500


class CompletionResponseError(CompletionError):
    """Response had no content, or structured output was not a JSON object."""


class CompletionBlockedError(CompletionError):
    """The provider refused to produce content."""


class SemanticError(ResearchGanttError):
    """Well-formed output that carries nothing usable."""

    status_code = 422


class ChartSemanticError(SemanticError):
    pass


class AnalysisSemanticError(SemanticError):
    pass
