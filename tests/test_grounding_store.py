from research_gantt.grounding_store import DEFAULT_SESSION, InMemoryGroundingStore, effective_session_id
from research_gantt.models import GroundingContext


def _ctx(text):
    return GroundingContext(corpus=text, filenames=[f"{text}.md"])


def test_replace_overwrites_previous_corpus():
    store = InMemoryGroundingStore()
    store.replace("s1", _ctx("first"))
    store.replace("s1", _ctx("second"))
    assert store.get("s1").corpus == "second"


def test_sessions_are_isolated_and_clearable():
    store = InMemoryGroundingStore()
    store.replace("a", _ctx("alpha"))
    store.replace("b", _ctx("beta"))
    store.clear("a")
    assert store.get("a") is None
    assert store.get("b").corpus == "beta"
    store.clear("missing")


def test_least_recently_used_session_is_evicted():
    store = InMemoryGroundingStore(max_sessions=2)
    store.replace("a", _ctx("alpha"))
    store.replace("b", _ctx("beta"))
    store.get("a")
    store.replace("c", _ctx("gamma"))
    assert store.get("b") is None
    assert store.get("a").corpus == "alpha"
    assert store.get("c").corpus == "gamma"


def test_blank_session_ids_share_the_default_slot():
    assert effective_session_id(None) == DEFAULT_SESSION
    assert effective_session_id("   ") == DEFAULT_SESSION
    assert effective_session_id(" tab-1 ") == "tab-1"
