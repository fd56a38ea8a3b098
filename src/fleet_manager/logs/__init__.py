"""Log entry filtering and the agent-side log handler."""

from fleet_manager.logs.filter import LogFilter, LogFilterError
from fleet_manager.logs.handler import LogsHandler, parse_log_date, parse_query_date

__all__ = [
    "LogFilter",
    "LogFilterError",
    "LogsHandler",
    "parse_log_date",
    "parse_query_date",
]
