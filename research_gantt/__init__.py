"""Document-grounded Gantt chart synthesis and task analysis."""

__version__ = "0.1.0"
