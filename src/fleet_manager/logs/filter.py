"""Log entry filtering and windowing.

A log entry is a header line matching the entry pattern, followed by any
number of continuation lines that don't match it (stack traces, wrapped
messages). ``LogFilter`` reads a file once, top to bottom, groups lines into
entries, drops entries whose header fails a group filter, and keeps either
the first or the last N surviving entries.

Usage::

    log_filter = LogFilter(
        "/var/log/presto/server.log",
        pattern=r"(?P<date>\\S+)\\t(?P<level>\\S+)\\t(?P<message>.*)",
        default_entry="1970-01-01T00:00:00.000+0000\\tINFO\\t",
        filters={"level": lambda level: level == "ERROR"},
        max_entries=100,
    )
    entries = log_filter.entries()
"""

from __future__ import annotations

import os
import re
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path

GroupFilter = Callable[[str | None], bool]


class LogFilterError(ValueError):
    """Raised when a LogFilter is configured inconsistently."""


class LogFilter:
    """Single-pass log reader with per-group filters and a bounded buffer.

    Instances are immutable; ``entries()`` re-reads the file on every call.
    """

    def __init__(
        self,
        path: str | Path,
        pattern: str | re.Pattern[str],
        default_entry: str,
        filters: Mapping[str, GroupFilter] | None = None,
        line_separator: str = os.linesep,
        max_entries: int | None = None,
        keep_first: bool = False,
        strict_decoding: bool = False,
    ) -> None:
        """Initialize LogFilter.

        Args:
            path: Log file to read. Must be an existing regular file.
            pattern: Header-line regex, matched against the whole line.
            default_entry: Header used when the file's first line is a
                continuation line. Must itself match *pattern*.
            filters: Named group -> predicate. An entry is kept only if
                every predicate accepts its header's group value.
            line_separator: Joins the lines of one entry on output.
            max_entries: Buffer capacity. ``None`` means unbounded.
            keep_first: Keep the first *max_entries* entries instead of
                the last ones.
            strict_decoding: Raise UnicodeDecodeError on bytes that aren't
                UTF-8 instead of replacing them with U+FFFD.

        Raises:
            FileNotFoundError: If *path* is missing or not a regular file.
            LogFilterError: If *default_entry* doesn't match, a filter names
                an unknown group, or *max_entries* is negative.
        """
        self._path = Path(path)
        if not self._path.is_file():
            raise FileNotFoundError(str(self._path))

        self._pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self._filters = dict(filters or {})
        unknown = [name for name in self._filters if name not in self._pattern.groupindex]
        if unknown:
            raise LogFilterError(
                f"Filter group(s) not in log entry pattern: {', '.join(sorted(unknown))}"
            )

        if self._pattern.fullmatch(default_entry) is None:
            raise LogFilterError("Default entry does not match log entry pattern")
        self._default_entry = default_entry

        if max_entries is not None and max_entries < 0:
            raise LogFilterError(f"max_entries must be >= 0, got {max_entries}")
        self._max_entries = max_entries
        self._keep_first = keep_first
        self._line_separator = line_separator
        self._decode_errors = "strict" if strict_decoding else "replace"

    @property
    def path(self) -> Path:
        return self._path

    def entries(self) -> list[str]:
        """Read the file and return the kept entries in file order."""
        with self._path.open("r", encoding="utf-8", errors=self._decode_errors) as f:
            return self.filter_lines(_strip_newlines(f))

    def filter_lines(self, lines: Iterable[str]) -> list[str]:
        """Apply the filter to an iterable of lines without newlines."""
        window = _EntryWindow(self._max_entries, self._keep_first)
        kept_last: bool | None = None

        for line in lines:
            match = self._pattern.fullmatch(line)
            if match is not None:
                kept_last = self._passes(match) and window.open_entry(line)
            elif kept_last is None:
                kept_last = self._open_default_entry(window, line)
            elif kept_last:
                kept_last = window.extend_last(line)

        return [self._line_separator.join(entry) for entry in window]

    def _open_default_entry(self, window: _EntryWindow, line: str) -> bool:
        default_match = self._pattern.fullmatch(self._default_entry)
        assert default_match is not None
        if not self._passes(default_match):
            return False
        if not window.open_entry(self._default_entry):
            return False
        return window.extend_last(line)

    def _passes(self, match: re.Match[str]) -> bool:
        return all(pred(match.group(name)) for name, pred in self._filters.items())


class _EntryWindow:
    """Bounded deque of entries, each entry a list of lines."""

    def __init__(self, max_entries: int | None, keep_first: bool) -> None:
        self._entries: deque[list[str]] = deque()
        self._max_entries = max_entries
        self._keep_first = keep_first

    def __iter__(self) -> Iterator[list[str]]:
        return iter(self._entries)

    def open_entry(self, line: str) -> bool:
        """Start a new entry. Returns False if the entry was refused."""
        if self._max_entries is not None and len(self._entries) >= self._max_entries:
            if self._max_entries == 0:
                return True
            if self._keep_first:
                return False
            self._entries.popleft()
        self._entries.append([line])
        return True

    def extend_last(self, line: str) -> bool:
        """Append a continuation line. Returns False if nothing is open."""
        if not self._entries:
            return False
        self._entries[-1].append(line)
        return True


def _strip_newlines(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        yield line[:-1] if line.endswith("\n") else line
