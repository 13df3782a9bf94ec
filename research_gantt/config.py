from dataclasses import dataclass
from datetime import date
import os

from dotenv import load_dotenv

load_dotenv()


def _as_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _as_date(name: str) -> date | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class AnthropicConfig:
    api_key: str
    model: str
    request_timeout_ms: int


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    backoff_ms: int


@dataclass(frozen=True)
class GroundingConfig:
    backend: str
    redis_url: str
    max_sessions: int
    ttl_seconds: int


@dataclass(frozen=True)
class AnalysisConfig:
    max_question_chars: int
    reference_date: date | None

    def anchor(self) -> date:
        return self.reference_date or date.today()


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    rich_tracebacks: bool


@dataclass(frozen=True)
class AppConfig:
    anthropic: AnthropicConfig
    retry: RetryConfig
    grounding: GroundingConfig
    analysis: AnalysisConfig
    logging: LoggingConfig
    cors_origins: list[str]

    @staticmethod
    def load() -> "AppConfig":
        origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
        return AppConfig(
            anthropic=AnthropicConfig(
                api_key=os.getenv("ANTHROPIC_API_KEY", ""),
                model=os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5"),
                request_timeout_ms=_as_int("REQUEST_TIMEOUT_MS", 120000),
            ),
            retry=RetryConfig(
                max_attempts=max(1, _as_int("COMPLETION_MAX_ATTEMPTS", 3)),
                backoff_ms=max(0, _as_int("COMPLETION_BACKOFF_MS", 1000)),
            ),
            grounding=GroundingConfig(
                backend=os.getenv("GROUNDING_STORE_BACKEND", "memory").lower(),
                redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
                max_sessions=_as_int("GROUNDING_MAX_SESSIONS", 64),
                ttl_seconds=_as_int("GROUNDING_TTL_SECONDS", 60 * 60 * 24),
            ),
            analysis=AnalysisConfig(
                max_question_chars=_as_int("MAX_QUESTION_CHARS", 1000),
                reference_date=_as_date("REFERENCE_DATE"),
            ),
            logging=LoggingConfig(
                level=os.getenv("LOG_LEVEL", "INFO"),
                rich_tracebacks=_as_bool("RICH_TRACEBACKS", True),
            ),
            cors_origins=origins,
        )


settings = AppConfig.load()
