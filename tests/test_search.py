"""Tests for debounced search and result rendering."""

import threading

import pytest

from supersearch.core.models import Pipeline, RecallHit, SearchResult
from supersearch.core.search import SearchSession, render_result


@pytest.fixture
def pipeline():
    return Pipeline(name="p1", model_name="m", splitter_name="s")


@pytest.fixture
def session(fake_store, pipeline):
    fake_store.recall_hits = [
        RecallHit(score=0.9, content="**Alpha** note", metadata={"path": "a.md", "type": "text"}),
        RecallHit(score=0.4, content="page text", metadata={"path": "b.pdf", "type": "pdf", "page": 2}),
    ]
    return SearchSession(fake_store, pipeline, limit=10, sleep=lambda seconds: None)


def test_results_mapped_from_hits(session, fake_store):
    results = session.suggest("alpha")

    assert results == [
        SearchResult(score=0.9, content="**Alpha** note", path="a.md", type="text"),
        SearchResult(score=0.4, content="page text", path="b.pdf", type="pdf", page=2),
    ]
    assert fake_store.recall_calls == [("alpha", "p1", 10)]


def test_empty_query_never_calls_store(session, fake_store):
    assert session.suggest("") == []
    assert fake_store.recall_calls == []


def test_stale_generation_never_reaches_store(fake_store, pipeline):
    session = None

    def keystroke_during_wait(seconds):
        # A newer keystroke arrives while generation 1 is waiting
        if session.generation == 1:
            session.submit()

    session = SearchSession(fake_store, pipeline, sleep=keystroke_during_wait)
    first = session.submit()

    assert session.results("al", first) == []
    assert fake_store.recall_calls == []

    assert session.results("alp", session.generation) is not None
    assert fake_store.recall_calls == [("alp", "p1", 10)]


def test_superseded_request_discarded_across_threads(fake_store, pipeline):
    session = SearchSession(fake_store, pipeline, quiescence=0.2)
    outcomes = {}

    first = session.submit()
    worker = threading.Thread(target=lambda: outcomes.setdefault(1, session.results("a", first)))
    worker.start()
    second = session.submit()
    outcomes[2] = session.results("ab", second)
    worker.join()

    assert outcomes[1] == []
    assert [call[0] for call in fake_store.recall_calls] == ["ab"]


def test_store_failure_returns_empty(session, fake_store):
    fake_store.fail_recall = True

    assert session.suggest("alpha") == []
    assert len(fake_store.recall_calls) == 1


def test_generations_increase(session):
    assert session.submit() < session.submit()
    assert session.is_current(session.generation)


def test_render_result():
    result = SearchResult(score=0.91234, content="# Heading\n" + "word " * 100, path="a.md", type="text")

    header, snippet = render_result(result, snippet_length=20)

    assert header == "a.md (0.912)"
    assert snippet == "Heading\nword word wo..."


def test_render_pdf_result_shows_page():
    result = SearchResult(score=0.5, content="text", path="b.pdf", type="pdf", page=3)

    header, _ = render_result(result)

    assert header == "b.pdf p.3 (0.500)"
