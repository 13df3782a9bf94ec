from dataclasses import replace

import pytest
from conftest import StubCompleter
from fastapi.testclient import TestClient

from research_gantt.config import settings
from research_gantt.grounding_store import InMemoryGroundingStore
from research_gantt.main import create_app
from research_gantt.prompts.question import FALLBACK_ANSWER

CHART = {
    "title": "Launch",
    "timeColumns": ["Q1 2026", "Q2 2026"],
    "data": [
        {"title": "Eng", "isSwimlane": True, "entity": "Eng"},
        {"title": "Build", "isSwimlane": False, "entity": "Eng", "bar": {"startCol": 1, "endCol": 3, "color": "dark-blue"}},
    ],
    "legend": [],
}


def _config(api_key="sk-test-0123456789"):
    return replace(settings, anthropic=replace(settings.anthropic, api_key=api_key))


def _upload(client, session="tab-1"):
    return client.post(
        "/generate-chart",
        data={"prompt": "Plan the launch"},
        files=[("researchFiles", ("plan.md", b"Build runs through Q2 2026.", "text/markdown"))],
        headers={"X-Session-Id": session},
    )


def test_generate_chart_then_ask_question():
    completer = StubCompleter(structured=CHART, text=FALLBACK_ANSWER)
    app = create_app(config=_config(), client=completer, store=InMemoryGroundingStore())
    with TestClient(app) as client:
        res = _upload(client)
        assert res.status_code == 200
        body = res.json()
        assert body["timeColumns"] == ["Q1 2026", "Q2 2026"]
        assert body["data"][1]["bar"] == {"startCol": 1, "endCol": 3, "color": "dark-blue"}

        res = client.post(
            "/ask-question",
            json={"taskName": "Build", "entity": "Eng", "question": "Who owns it?"},
            headers={"X-Session-Id": "tab-1"},
        )
        assert res.status_code == 200
        assert res.json() == {"answer": FALLBACK_ANSWER}


def test_sessions_do_not_share_research():
    completer = StubCompleter(structured=CHART, text="x")
    app = create_app(config=_config(), client=completer, store=InMemoryGroundingStore())
    with TestClient(app) as client:
        assert _upload(client, session="tab-1").status_code == 200
        res = client.post(
            "/ask-question",
            json={"taskName": "Build", "entity": "Eng", "question": "When?"},
            headers={"X-Session-Id": "tab-2"},
        )
        assert res.status_code == 400
        assert "error" in res.json()


def test_empty_question_is_rejected_without_a_model_call():
    completer = StubCompleter(structured=CHART, text="unused")
    app = create_app(config=_config(), client=completer, store=InMemoryGroundingStore())
    with TestClient(app) as client:
        _upload(client)
        calls_before = len(completer.calls)
        res = client.post(
            "/ask-question",
            json={"taskName": "Build", "entity": "Eng", "question": "  "},
            headers={"X-Session-Id": "tab-1"},
        )
        assert res.status_code == 400
        assert len(completer.calls) == calls_before


def test_unsupported_upload_is_rejected():
    completer = StubCompleter(structured=CHART)
    app = create_app(config=_config(), client=completer, store=InMemoryGroundingStore())
    with TestClient(app) as client:
        res = client.post(
            "/generate-chart",
            data={"prompt": "Plan"},
            files=[("researchFiles", ("deck.pdf", b"%PDF-1.4", "application/pdf"))],
        )
        assert res.status_code == 400
        assert "deck.pdf" in res.json()["error"]
        assert completer.calls == []


def test_chart_without_tasks_is_unprocessable():
    completer = StubCompleter(structured={"title": "Empty", "timeColumns": [], "data": []})
    app = create_app(config=_config(), client=completer, store=InMemoryGroundingStore())
    with TestClient(app) as client:
        res = _upload(client)
        assert res.status_code == 422
        assert "unable to find any tasks" in res.json()["error"]


def test_task_analysis_requires_identifiers():
    completer = StubCompleter(structured=CHART)
    app = create_app(config=_config(), client=completer, store=InMemoryGroundingStore())
    with TestClient(app) as client:
        res = client.post("/get-task-analysis", json={"taskName": "Build"})
        assert res.status_code == 400
        assert res.json() == {"error": "Missing taskName or entity"}


def test_layout_endpoint_places_today_marker():
    app = create_app(config=_config(), client=StubCompleter(), store=InMemoryGroundingStore())
    with TestClient(app) as client:
        res = client.post("/chart/layout", params={"today": "2026-05-15"}, json=CHART)
        assert res.status_code == 200
        body = res.json()
        assert body["gridTemplateColumns"] == "minmax(400px, 1.5fr) repeat(2, 1fr)"
        assert body["today"]["index"] == 1
        assert body["rows"][1]["task"] == {"taskName": "Build", "entity": "Eng"}


def test_clear_session_forgets_research():
    completer = StubCompleter(structured=CHART, text="x")
    store = InMemoryGroundingStore()
    app = create_app(config=_config(), client=completer, store=store)
    with TestClient(app) as client:
        _upload(client)
        assert store.get("tab-1") is not None
        assert client.delete("/session", headers={"X-Session-Id": "tab-1"}).json()["ok"] is True
        assert store.get("tab-1") is None


@pytest.mark.parametrize("api_key", ["", "short"])
def test_startup_fails_without_usable_api_key(api_key):
    app = create_app(config=_config(api_key=api_key), client=StubCompleter(), store=InMemoryGroundingStore())
    with pytest.raises(RuntimeError):
        with TestClient(app):
            pass


def test_layout_and_session_requests_show_up_in_metrics():
    app = create_app(config=_config(), client=StubCompleter(), store=InMemoryGroundingStore())
    with TestClient(app) as client:
        client.post("/chart/layout", params={"today": "2026-05-15"}, json=CHART)
        client.delete("/session", headers={"X-Session-Id": "tab-9"})
        endpoints = client.get("/metrics").json()["endpoints"]
        assert endpoints["/chart/layout"]["count"] >= 1
        assert endpoints["/session"]["count"] >= 1


def test_environment_is_loaded_once_by_config():
    import research_gantt.main as main_module

    assert not hasattr(main_module, "load_dotenv")
