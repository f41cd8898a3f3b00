"""Command-line entry point."""

from __future__ import annotations

import locale
from pathlib import Path

import pytest

from pathdeck import app


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    return home


@pytest.fixture(autouse=True)
def collation_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[int, str]]:
    calls: list[tuple[int, str]] = []

    def record(category: int, value: str) -> str:
        calls.append((category, value))
        return "C"

    monkeypatch.setattr(app.locale, "setlocale", record)
    return calls


def test_main_lists_directory(qapp, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "listing"
    (target / "docs").mkdir(parents=True)
    (target / "readme.md").write_text("hi", encoding="utf-8")

    assert app.main([str(target)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].endswith("docs/")
    assert lines[1].endswith("readme.md")


def test_main_adopts_user_collation(qapp, tmp_path: Path, collation_calls: list[tuple[int, str]]) -> None:
    target = tmp_path / "listing"
    target.mkdir()

    assert app.main([str(target)]) == 0

    assert collation_calls == [(locale.LC_COLLATE, "")]


def test_main_survives_unknown_locale(qapp, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def reject(category: int, value: str) -> str:
        raise locale.Error("unsupported locale setting")

    monkeypatch.setattr(app.locale, "setlocale", reject)
    target = tmp_path / "listing"
    target.mkdir()

    assert app.main([str(target)]) == 0


def test_main_reports_missing_directory(qapp, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main([str(tmp_path / "missing")]) == 1

    assert "Not found" in capsys.readouterr().err


def test_main_searches(qapp, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "x"
    target.mkdir()
    (target / "a.txt").write_text("a", encoding="utf-8")

    assert app.main([str(target), "--search", "a"]) == 0

    assert capsys.readouterr().out.splitlines() == [str(target / "a.txt")]
