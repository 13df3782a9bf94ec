from collections import OrderedDict
from threading import Lock
from typing import Protocol

from research_gantt.config import GroundingConfig, settings
from research_gantt.models import GroundingContext

DEFAULT_SESSION = "default"


class GroundingStore(Protocol):
    def get(self, session_id: str) -> GroundingContext | None:
        ...

    def replace(self, session_id: str, context: GroundingContext) -> None:
        ...

    def clear(self, session_id: str) -> None:
        ...


class InMemoryGroundingStore:
    """One corpus slot per session; the oldest session is evicted past ``max_sessions``."""

    def __init__(self, max_sessions: int = 64) -> None:
        self._max_sessions = max(1, max_sessions)
        self._lock = Lock()
        self._slots: OrderedDict[str, GroundingContext] = OrderedDict()

    def get(self, session_id: str) -> GroundingContext | None:
        with self._lock:
            context = self._slots.get(session_id)
            if context is not None:
                self._slots.move_to_end(session_id)
            return context

    def replace(self, session_id: str, context: GroundingContext) -> None:
        with self._lock:
            self._slots[session_id] = context
            self._slots.move_to_end(session_id)
            while len(self._slots) > self._max_sessions:
                self._slots.popitem(last=False)

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._slots.pop(session_id, None)


class RedisGroundingStore:
    """Redis-backed store for deployments running more than one worker."""

    def __init__(self, redis_url: str, ttl_seconds: int = 60 * 60 * 24) -> None:
        import redis

        self._redis = redis.from_url(redis_url, decode_responses=True)
        self._ttl_seconds = ttl_seconds

    def get(self, session_id: str) -> GroundingContext | None:
        raw = self._redis.get(self._key(session_id))
        if not raw:
            return None
        return GroundingContext.model_validate_json(raw)

    def replace(self, session_id: str, context: GroundingContext) -> None:
        self._redis.setex(self._key(session_id), self._ttl_seconds, context.model_dump_json())

    def clear(self, session_id: str) -> None:
        self._redis.delete(self._key(session_id))

    @staticmethod
    def _key(session_id: str) -> str:
        return f"research-gantt:grounding:{session_id}"


def effective_session_id(session_id: str | None) -> str:
    return (session_id or "").strip() or DEFAULT_SESSION


def build_grounding_store(config: GroundingConfig | None = None) -> GroundingStore:
    config = config or settings.grounding
    if config.backend == "redis":
        return RedisGroundingStore(redis_url=config.redis_url, ttl_seconds=config.ttl_seconds)
    return InMemoryGroundingStore(max_sessions=config.max_sessions)
