"""Name search: matching, facets, traversal scope and the async engine."""

from __future__ import annotations

from datetime import datetime, timedelta
import os
from pathlib import Path

import pytest

from pathdeck.catalog.entry import ContentKind
from pathdeck.catalog.errors import AccessDenied, NotFound
from pathdeck.ops.search_worker import (
    DateBucket,
    SearchEngine,
    SearchFilters,
    _months_before,
    search_tree,
)


@pytest.fixture
def corpus(tmp_path: Path) -> Path:
    root = tmp_path / "corpus"
    (root / "Reports" / "archive").mkdir(parents=True)
    (root / ".cache").mkdir()
    (root / "report-final.PDF").write_text("p", encoding="utf-8")
    (root / "Reports" / "annual report.txt").write_text("t", encoding="utf-8")
    (root / "Reports" / "archive" / "old-report.png").write_text("i", encoding="utf-8")
    (root / ".cache" / "report.tmp").write_text("c", encoding="utf-8")
    (root / "unrelated.md").write_text("u", encoding="utf-8")
    return root


def _names(entries) -> list[str]:
    return [entry.name for entry in entries]


def test_single_match_in_flat_directory(tmp_path: Path) -> None:
    root = tmp_path / "x"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")

    results = search_tree(root, "a")

    assert _names(results) == ["a.txt"]
    assert results[0].path == root / "a.txt"


def test_match_is_case_insensitive_and_recursive(corpus: Path) -> None:
    results = search_tree(corpus, "REPORT")

    assert _names(results) == ["Reports", "annual report.txt", "old-report.png", "report-final.PDF"]


def test_search_without_subdirectories_stays_at_top(corpus: Path) -> None:
    results = search_tree(corpus, "report", include_subdirectories=False)

    assert _names(results) == ["Reports", "report-final.PDF"]


def test_hidden_directories_are_searched_only_on_request(corpus: Path) -> None:
    hidden = search_tree(corpus, "tmp", filters=SearchFilters(include_hidden=True))

    assert search_tree(corpus, "tmp") == []
    assert _names(hidden) == ["report.tmp"]


def test_content_facet_filters_results(corpus: Path) -> None:
    folders = search_tree(corpus, "report", filters=SearchFilters(content=ContentKind.FOLDER))
    images = search_tree(corpus, "report", filters=SearchFilters(content=ContentKind.IMAGE))
    documents = search_tree(corpus, "report", filters=SearchFilters(content=ContentKind.DOCUMENT))

    assert _names(folders) == ["Reports"]
    assert _names(images) == ["old-report.png"]
    assert _names(documents) == ["annual report.txt", "report-final.PDF"]


def test_date_bucket_filters_by_modification_time(tmp_path: Path) -> None:
    root = tmp_path / "dated"
    root.mkdir()
    fresh = root / "log-new.txt"
    stale = root / "log-old.txt"
    fresh.write_text("n", encoding="utf-8")
    stale.write_text("o", encoding="utf-8")
    two_years_ago = (datetime.now() - timedelta(days=730)).timestamp()
    os.utime(stale, (two_years_ago, two_years_ago))

    for bucket in (DateBucket.TODAY, DateBucket.THIS_WEEK, DateBucket.THIS_MONTH, DateBucket.THIS_YEAR):
        results = search_tree(root, "log", filters=SearchFilters(modified=bucket))
        assert _names(results) == ["log-new.txt"]
    assert len(search_tree(root, "log")) == 2


def test_months_before_clamps_to_month_end() -> None:
    assert _months_before(datetime(2024, 3, 31, 12), 1) == datetime(2024, 2, 29, 12)
    assert _months_before(datetime(2024, 1, 15), 12) == datetime(2023, 1, 15)
    assert _months_before(datetime(2024, 1, 10), 1) == datetime(2023, 12, 10)


def test_missing_root_is_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFound):
        search_tree(tmp_path / "missing", "a")


def test_blank_query_returns_nothing(corpus: Path) -> None:
    assert search_tree(corpus, "   ") == []


@pytest.mark.skipif(not hasattr(os, "geteuid") or os.geteuid() == 0, reason="root ignores permissions")
def test_unreadable_root_is_access_denied(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    (locked / "report.txt").write_text("r", encoding="utf-8")
    locked.chmod(0)
    try:
        with pytest.raises(AccessDenied):
            search_tree(locked, "report")
        with pytest.raises(AccessDenied):
            search_tree(locked, "  ")
    finally:
        locked.chmod(0o755)


def test_blank_query_still_checks_root(tmp_path: Path) -> None:
    with pytest.raises(NotFound):
        search_tree(tmp_path / "missing", "  ")


def test_engine_delivers_results(pool, corpus: Path, wait_until) -> None:
    engine = SearchEngine(pool=pool)
    found: list[str] = []
    finished: list[int] = []
    engine.resultFound.connect(lambda entry: found.append(entry.name))
    engine.searchFinished.connect(finished.append)

    engine.search(corpus, "report")
    assert engine.is_searching
    assert wait_until(lambda: finished)

    assert finished == [4]
    assert sorted(found) == sorted(_names(engine.results))
    assert _names(engine.results) == ["Reports", "annual report.txt", "old-report.png", "report-final.PDF"]
    assert not engine.is_searching
    assert engine.query == "report"


def test_new_search_supersedes_running_one(pool, corpus: Path, tmp_path: Path, wait_until, settle) -> None:
    other = tmp_path / "other"
    other.mkdir()
    (other / "report-b.txt").write_text("b", encoding="utf-8")
    engine = SearchEngine(pool=pool)
    finished: list[int] = []
    engine.searchFinished.connect(finished.append)

    first = engine.search(corpus, "report")
    second = engine.search(other, "report")
    assert wait_until(lambda: not engine.is_searching)
    settle(0.1)

    assert first != second
    assert finished == [1]
    assert [entry.path for entry in engine.results] == [other / "report-b.txt"]


def test_cancel_stops_updates(pool, corpus: Path, settle) -> None:
    engine = SearchEngine(pool=pool)
    finished: list[int] = []
    engine.searchFinished.connect(finished.append)

    engine.search(corpus, "report")
    engine.cancel()
    settle(0.2)

    assert not engine.is_searching
    assert finished == []
    assert engine.results == []


def test_engine_blank_query_finishes_immediately(pool, corpus: Path) -> None:
    engine = SearchEngine(pool=pool)
    finished: list[int] = []
    engine.searchFinished.connect(finished.append)

    engine.search(corpus, "")

    assert finished == [0]
    assert not engine.is_searching
    assert engine.results == []


def test_engine_blank_query_reports_missing_root(pool, tmp_path: Path) -> None:
    engine = SearchEngine(pool=pool)
    errors: list[str] = []
    finished: list[int] = []
    engine.errorOccurred.connect(errors.append)
    engine.searchFinished.connect(finished.append)

    engine.search(tmp_path / "missing", "  ")

    assert errors and "Not found" in errors[0]
    assert engine.last_error == errors[0]
    assert finished == [0]
    assert not engine.is_searching


def test_engine_reports_missing_root(pool, tmp_path: Path, wait_until) -> None:
    engine = SearchEngine(pool=pool)
    errors: list[str] = []
    engine.errorOccurred.connect(errors.append)

    engine.search(tmp_path / "missing", "a")
    assert wait_until(lambda: not engine.is_searching)

    assert errors and "Not found" in errors[0]
    assert engine.last_error == errors[0]
    assert engine.results == []


def test_clear_resets_results(pool, corpus: Path, wait_until) -> None:
    engine = SearchEngine(pool=pool)
    engine.search(corpus, "unrelated")
    assert wait_until(lambda: not engine.is_searching)
    assert len(engine.results) == 1

    engine.clear()

    assert engine.results == []
    assert engine.query == ""
