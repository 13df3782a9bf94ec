from collections import deque
from dataclasses import dataclass
from typing import Any

from research_gantt.providers.claude_client import ClaudeUsage


@dataclass
class MetricEvent:
    endpoint: str
    total_ms: float
    error: bool


class MetricsTracker:
    def __init__(self) -> None:
        self.events = deque(maxlen=5000)
        self.request_count = 0
        self.completion_calls = 0
        self.tokens_in = 0
        self.tokens_out = 0

    def record(self, *, endpoint: str, total_ms: float, error: bool = False) -> None:
        self.request_count += 1
        self.events.append(MetricEvent(endpoint=endpoint, total_ms=total_ms, error=error))

    def record_usage(self, usage: ClaudeUsage) -> None:
        self.completion_calls += 1
        self.tokens_in += usage.input_tokens or 0
        self.tokens_out += usage.output_tokens or 0

    @staticmethod
    def _percentile(values: list[float], p: float) -> float:
        if not values:
            return 0.0
        arr = sorted(values)
        idx = min(int(len(arr) * p), len(arr) - 1)
        return round(arr[idx], 2)

    def stats(self) -> dict[str, Any]:
        by_endpoint: dict[str, list[MetricEvent]] = {}
        for e in self.events:
            by_endpoint.setdefault(e.endpoint, []).append(e)
        return {
            "request_count": self.request_count,
            "completion_calls": self.completion_calls,
            "tokens": {"input": self.tokens_in, "output": self.tokens_out},
            "endpoints": {
                name: {
                    "count": len(events),
                    "errors": sum(1 for e in events if e.error),
                    "latency_p50_ms": self._percentile([e.total_ms for e in events], 0.5),
                    "latency_p95_ms": self._percentile([e.total_ms for e in events], 0.95),
                }
                for name, events in sorted(by_endpoint.items())
            },
            "errors": sum(1 for e in self.events if e.error),
        }


metrics = MetricsTracker()
