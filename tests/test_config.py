from datetime import date

from research_gantt.config import AppConfig


def test_defaults_match_completion_contract(monkeypatch):
    for name in ("COMPLETION_MAX_ATTEMPTS", "COMPLETION_BACKOFF_MS", "MAX_QUESTION_CHARS", "REFERENCE_DATE"):
        monkeypatch.delenv(name, raising=False)
    cfg = AppConfig.load()
    assert cfg.retry.max_attempts == 3
    assert cfg.retry.backoff_ms == 1000
    assert cfg.analysis.max_question_chars == 1000
    assert cfg.analysis.reference_date is None
    assert cfg.analysis.anchor() == date.today()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("COMPLETION_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("REFERENCE_DATE", "2025-11-14")
    monkeypatch.setenv("GROUNDING_STORE_BACKEND", "Redis")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")
    cfg = AppConfig.load()
    assert cfg.retry.max_attempts == 5
    assert cfg.analysis.anchor() == date(2025, 11, 14)
    assert cfg.grounding.backend == "redis"
    assert cfg.cors_origins == ["http://a.test", "http://b.test"]


def test_bad_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("COMPLETION_BACKOFF_MS", "soon")
    monkeypatch.setenv("REFERENCE_DATE", "next tuesday")
    cfg = AppConfig.load()
    assert cfg.retry.backoff_ms == 1000
    assert cfg.analysis.reference_date is None
