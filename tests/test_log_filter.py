"""Tests for LogFilter: entry grouping, group filters and windowing.

Covers:
- Construction validation
- Continuation lines and the default entry
- Keep-first vs keep-last windows
- Filters on named groups
"""

from __future__ import annotations

from pathlib import Path

import pytest

from fleet_manager.logs.filter import LogFilter, LogFilterError

PATTERN = r"(?P<date>\S+)\t(?P<level>\S+)\t(?P<message>.*)"
DEFAULT = "1970-01-01T00:00:00.000+0000\tINFO\t"


def _write(tmp_path: Path, lines: list[str]) -> Path:
    path = tmp_path / "server.log"
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


def _filter(path: Path, **kwargs) -> LogFilter:
    kwargs.setdefault("line_separator", "\r\n")
    return LogFilter(path, PATTERN, DEFAULT, **kwargs)


# --- Construction ---


class TestConstruction:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            _filter(tmp_path / "nope.log")

    def test_directory_is_not_a_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            _filter(tmp_path)

    def test_unknown_group(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [])
        with pytest.raises(LogFilterError, match="thread"):
            _filter(path, filters={"thread": lambda v: True})

    def test_default_entry_must_match(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [])
        with pytest.raises(LogFilterError):
            LogFilter(path, PATTERN, "not an entry")

    def test_negative_max_entries(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [])
        with pytest.raises(LogFilterError):
            _filter(path, max_entries=-1)


# --- Grouping ---


class TestGrouping:
    def test_empty_file(self, tmp_path: Path) -> None:
        assert _filter(_write(tmp_path, [])).entries() == []

    def test_continuation_lines_join_their_entry(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "2020-01-01T00:00:00.000+0000\tINFO\tstarting",
            "2020-01-01T00:00:01.000+0000\tERROR\tboom",
            "\tat Foo.bar",
            "\tat Foo.baz",
        ])
        entries = _filter(path).entries()
        assert entries == [
            "2020-01-01T00:00:00.000+0000\tINFO\tstarting",
            "2020-01-01T00:00:01.000+0000\tERROR\tboom\r\n\tat Foo.bar\r\n\tat Foo.baz",
        ]

    def test_leading_continuation_uses_default_entry(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "orphan line",
            "2020-01-01T00:00:00.000+0000\tINFO\tstarting",
        ])
        entries = _filter(path).entries()
        assert entries[0] == f"{DEFAULT}\r\norphan line"
        assert len(entries) == 2

    def test_filter_lines_without_file_io(self, tmp_path: Path) -> None:
        log_filter = _filter(_write(tmp_path, []))
        entries = log_filter.filter_lines([
            "2020-01-01T00:00:00.000+0000\tINFO\ta",
            "b",
        ])
        assert entries == ["2020-01-01T00:00:00.000+0000\tINFO\ta\r\nb"]

    def test_custom_line_separator(self, tmp_path: Path) -> None:
        path = _write(tmp_path, ["2020-01-01T00:00:00.000+0000\tINFO\ta", "b"])
        assert _filter(path, line_separator="\n").entries() == [
            "2020-01-01T00:00:00.000+0000\tINFO\ta\nb",
        ]


# --- Filters ---


class TestFilters:
    def test_level_filter_drops_continuations_of_rejected_entries(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "2020-01-01T00:00:00.000+0000\tINFO\tskip me",
            "skipped continuation",
            "2020-01-01T00:00:01.000+0000\tERROR\tkeep me",
            "cont1",
        ])
        entries = _filter(path, filters={"level": lambda v: v == "ERROR"}).entries()
        assert entries == ["2020-01-01T00:00:01.000+0000\tERROR\tkeep me\r\ncont1"]

    def test_rejected_default_entry_drops_leading_lines(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "orphan",
            "2020-01-01T00:00:01.000+0000\tERROR\tkept",
        ])
        entries = _filter(path, filters={"level": lambda v: v == "ERROR"}).entries()
        assert entries == ["2020-01-01T00:00:01.000+0000\tERROR\tkept"]

    def test_every_filter_must_pass(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "2020-01-01T00:00:00.000+0000\tERROR\ta",
            "2020-01-02T00:00:00.000+0000\tERROR\tb",
        ])
        entries = _filter(
            path,
            filters={
                "level": lambda v: v == "ERROR",
                "date": lambda v: v is not None and v.startswith("2020-01-02"),
            },
        ).entries()
        assert entries == ["2020-01-02T00:00:00.000+0000\tERROR\tb"]


# --- Windowing ---


def _numbered(tmp_path: Path, count: int) -> Path:
    return _write(tmp_path, [
        f"2020-01-01T00:00:0{i}.000+0000\tINFO\tentry {i}" for i in range(count)
    ])


class TestWindow:
    def test_keep_last(self, tmp_path: Path) -> None:
        entries = _filter(_numbered(tmp_path, 5), max_entries=2).entries()
        assert [e.rsplit(" ", 1)[1] for e in entries] == ["3", "4"]

    def test_keep_first(self, tmp_path: Path) -> None:
        entries = _filter(_numbered(tmp_path, 5), max_entries=2, keep_first=True).entries()
        assert [e.rsplit(" ", 1)[1] for e in entries] == ["0", "1"]

    def test_keep_first_ignores_continuations_after_full(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "2020-01-01T00:00:00.000+0000\tINFO\tfirst",
            "first cont",
            "2020-01-01T00:00:01.000+0000\tINFO\tsecond",
            "second cont",
        ])
        entries = _filter(path, max_entries=1, keep_first=True).entries()
        assert entries == ["2020-01-01T00:00:00.000+0000\tINFO\tfirst\r\nfirst cont"]

    def test_keep_last_keeps_continuations_of_survivors(self, tmp_path: Path) -> None:
        path = _write(tmp_path, [
            "2020-01-01T00:00:00.000+0000\tINFO\tfirst",
            "first cont",
            "2020-01-01T00:00:01.000+0000\tINFO\tsecond",
            "second cont",
        ])
        entries = _filter(path, max_entries=1).entries()
        assert entries == ["2020-01-01T00:00:01.000+0000\tINFO\tsecond\r\nsecond cont"]

    def test_zero_entries(self, tmp_path: Path) -> None:
        assert _filter(_numbered(tmp_path, 3), max_entries=0).entries() == []
        assert _filter(_numbered(tmp_path, 3), max_entries=0, keep_first=True).entries() == []

    def test_unbounded(self, tmp_path: Path) -> None:
        assert len(_filter(_numbered(tmp_path, 5)).entries()) == 5

    def test_entries_is_repeatable(self, tmp_path: Path) -> None:
        log_filter = _filter(_numbered(tmp_path, 3), max_entries=2)
        assert log_filter.entries() == log_filter.entries()


# --- Decoding ---


class TestDecoding:
    def test_invalid_utf8_replaced_by_default(self, tmp_path: Path) -> None:
        path = tmp_path / "server.log"
        path.write_bytes(b"2020-01-01T00:00:00.000+0000\tINFO\tcaf\xe9\n")
        assert _filter(path).entries() == ["2020-01-01T00:00:00.000+0000\tINFO\tcaf\ufffd"]

    def test_strict_decoding_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "server.log"
        path.write_bytes(b"2020-01-01T00:00:00.000+0000\tINFO\tcaf\xe9\n")
        with pytest.raises(UnicodeDecodeError):
            _filter(path, strict_decoding=True).entries()
