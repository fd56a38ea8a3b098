"""Error taxonomy shared by the agent and the controller.

Every error carries the HTTP status code it maps to. Both FastAPI apps
register a single handler that turns these into ``text/plain`` responses,
so service code raises and never builds responses itself.
"""

from __future__ import annotations


class FleetManagerError(Exception):
    """Base class. Unclassified failures map to 500."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ClientInputError(FleetManagerError):
    """Malformed scope, node id, date, URL, file name or package type."""

    status_code = 400


class ResourceNotFound(FleetManagerError):
    """File, property or package absent."""

    status_code = 404


class StateConflict(FleetManagerError):
    """Already installed, running when it must be stopped, and similar."""

    status_code = 409


class ExternalProcessFailure(FleetManagerError):
    """A subprocess exited non-zero or timed out."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def __str__(self) -> str:
        if self.exit_code is None:
            return self.message
        return f"{self.message} (exit code {self.exit_code})"


class DiscoveryInconsistency(FleetManagerError):
    """Discovery returned something the controller cannot act on."""
