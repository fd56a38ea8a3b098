"""Log retrieval and deletion for the agent's ``/logs`` routes.

Wraps :class:`~fleet_manager.logs.filter.LogFilter` with the two filters the
HTTP surface exposes (date range and level) and keeps file access inside the
configured log directory.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from pathlib import Path

from fleet_manager.config import DEFAULT_LOG_ENTRY, DEFAULT_LOG_ENTRY_PATTERN
from fleet_manager.errors import ClientInputError, FleetManagerError, ResourceNotFound
from fleet_manager.logs.filter import GroupFilter, LogFilter, LogFilterError

logger = logging.getLogger(__name__)

ALL_LEVELS = "ALL"
ENTRY_SEPARATOR = "\r\n"
DATE_GROUP = "date"
LEVEL_GROUP = "level"

_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")
_NAIVE_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S")


def parse_log_date(text: str) -> datetime:
    """Parse a log timestamp such as ``2020-01-01T00:00:00.000+0000``.

    Raises ValueError if *text* has no offset or isn't a valid date-time.
    """
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid log date: {text!r}")


def parse_query_date(text: str) -> datetime:
    """Parse a ``from``/``to`` query value. Naive values are read as UTC.

    Raises ClientInputError on malformed input.
    """
    text = text.strip()
    try:
        return parse_log_date(text)
    except ValueError:
        pass
    for fmt in _NAIVE_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    raise ClientInputError(f"Invalid date: {text!r}")


class LogsHandler:
    """List, read and prune the log files under one directory."""

    def __init__(
        self,
        log_dir: str | Path,
        pattern: str = DEFAULT_LOG_ENTRY_PATTERN,
        default_entry: str = DEFAULT_LOG_ENTRY,
    ) -> None:
        self._log_dir = Path(log_dir)
        self._pattern = re.compile(pattern)
        self._default_entry = default_entry

        match = self._pattern.fullmatch(default_entry)
        if match is None:
            raise LogFilterError("Default entry does not match log entry pattern")
        missing = {DATE_GROUP, LEVEL_GROUP} - set(self._pattern.groupindex)
        if missing:
            raise LogFilterError('Log pattern should have groups named "date" and "level"')
        try:
            parse_log_date(match.group(DATE_GROUP))
        except ValueError as e:
            raise LogFilterError("Default log entry has invalid date") from e

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def list_logs(self) -> list[str]:
        """Names of the regular files in the log directory, sorted."""
        if not self._log_dir.exists():
            logger.error("Configured log directory does not exist: %s", self._log_dir)
            raise FleetManagerError("Configured log directory does not exist")
        if not self._log_dir.is_dir():
            logger.error("Configured log directory is not a directory: %s", self._log_dir)
            raise FleetManagerError("Configured log directory is not a directory")
        return sorted(p.name for p in self._log_dir.iterdir() if p.is_file())

    def get_logs(
        self,
        filename: str,
        start: datetime | None = None,
        end: datetime | None = None,
        level: str | None = None,
        max_entries: int | None = None,
    ) -> list[str]:
        """Return the entries of *filename* that fall in the date range and level.

        With *start* set the earliest matching entries are kept; otherwise
        the most recent ones.
        """
        if start is not None and end is not None:
            if max_entries is not None:
                raise ClientInputError("Can not provide date range and limit number of entries")
            if start > end:
                raise ClientInputError(
                    f"End of date range ({end.isoformat()}) is before start ({start.isoformat()})"
                )
        if max_entries is not None and max_entries < 0:
            raise ClientInputError(f"Invalid number of entries: {max_entries}")

        log_filter = self._build_filter(
            filename,
            filters={
                DATE_GROUP: _date_filter(start, end),
                LEVEL_GROUP: _level_filter(level),
            },
            line_separator=ENTRY_SEPARATOR,
            max_entries=max_entries,
            keep_first=start is not None,
        )
        return self._read(log_filter)

    def delete_logs(self, filename: str, end: datetime | None = None) -> str:
        """Truncate *filename*, or drop only the entries dated before *end*."""
        path = self._resolve(filename)
        if end is None:
            self._check_file(path)
            path.write_bytes(b"")
            logger.info("Truncated log file %s", path)
            return f"Truncated {filename}"

        log_filter = self._build_filter(
            filename,
            filters={DATE_GROUP: _date_filter(end, None)},
            line_separator="\n",
            strict_decoding=True,
        )
        entries = self._read(log_filter)
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text("".join(f"{entry}\n" for entry in entries), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            logger.warning("I/O error rewriting %s: %s", path, e)
            raise FleetManagerError("IOException while writing file") from e
        logger.info("Removed entries before %s from %s", end.isoformat(), path)
        return f"Removed entries before {end.isoformat()} from {filename}"

    def _build_filter(
        self,
        filename: str,
        filters: dict[str, GroupFilter],
        line_separator: str,
        max_entries: int | None = None,
        keep_first: bool = False,
        strict_decoding: bool = False,
    ) -> LogFilter:
        path = self._resolve(filename)
        self._check_file(path)
        return LogFilter(
            path,
            self._pattern,
            self._default_entry,
            filters=filters,
            line_separator=line_separator,
            max_entries=max_entries,
            keep_first=keep_first,
            strict_decoding=strict_decoding,
        )

    def _read(self, log_filter: LogFilter) -> list[str]:
        try:
            return log_filter.entries()
        except UnicodeDecodeError as e:
            logger.warning("Log file %s is not valid UTF-8: %s", log_filter.path, e)
            raise FleetManagerError("Log file contains invalid UTF-8") from e
        except ValueError as e:
            logger.warning("Date in log file %s has invalid format: %s", log_filter.path, e)
            raise FleetManagerError("Date in log file has invalid format") from e
        except OSError as e:
            logger.warning("I/O error reading %s: %s", log_filter.path, e)
            raise FleetManagerError("IOException while reading file") from e

    def _resolve(self, filename: str) -> Path:
        base = self._log_dir.resolve()
        path = (base / filename).resolve()
        if path == base or not path.is_relative_to(base):
            raise ClientInputError("Invalid file name")
        return path

    @staticmethod
    def _check_file(path: Path) -> None:
        if not path.exists():
            raise ResourceNotFound("File not found")
        if not path.is_file():
            raise ResourceNotFound("Not a regular file")


def _date_filter(start: datetime | None, end: datetime | None) -> GroupFilter:
    if start is None and end is None:
        return lambda _value: True

    def accept(value: str | None) -> bool:
        date = parse_log_date(value or "")
        if start is not None and date < start:
            return False
        return end is None or date <= end

    return accept


def _level_filter(level: str | None) -> GroupFilter:
    if level is None or level.upper() == ALL_LEVELS:
        return lambda _value: True
    wanted = level.upper()
    return lambda value: value is not None and value.upper() == wanted
