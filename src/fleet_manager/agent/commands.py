"""CommandExecutor: runs external commands via ``subprocess.run``.

stdout and stderr are merged into one output string. The exit code is
returned, not raised, because several callers treat specific non-zero
codes as success (``service <name> status`` exits 3 when stopped).
"""

from __future__ import annotations

import logging
import shlex
import subprocess

from fleet_manager.errors import ExternalProcessFailure
from fleet_manager.models import CommandResult

logger = logging.getLogger(__name__)

DEFAULT_SHORT_TIMEOUT = 60.0
DEFAULT_LONG_TIMEOUT = 150.0


class CommandExecutor:
    """Runs commands with one of two timeout classes."""

    def __init__(
        self,
        short_timeout: float = DEFAULT_SHORT_TIMEOUT,
        long_timeout: float = DEFAULT_LONG_TIMEOUT,
    ) -> None:
        self._short_timeout = short_timeout
        self._long_timeout = long_timeout

    def run(self, *command: str) -> CommandResult:
        """Run a quick command (status checks, queries) with the short timeout."""
        return self._execute(command, self._short_timeout)

    def run_long(self, *command: str) -> CommandResult:
        """Run a slow command (install, upgrade, start) with the long timeout."""
        return self._execute(command, self._long_timeout)

    def _execute(self, command: tuple[str, ...], timeout: float) -> CommandResult:
        if not command:
            raise ValueError("Command is empty")
        command_str = shlex.join(command)
        logger.debug("Command to be executed: %s", command_str)
        try:
            proc = subprocess.run(
                list(command),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalProcessFailure(
                f"Command timed out after {timeout:g}s: {command_str}"
            ) from e
        except OSError as e:
            raise ExternalProcessFailure(f"Error executing command: {command_str}: {e}") from e

        output = proc.stdout or ""
        logger.info("Output from command: %s (exit %d)\n%s", command_str, proc.returncode, output)
        return CommandResult(exit_code=proc.returncode, output=output)


def require_success(result: CommandResult, message: str) -> CommandResult:
    """Return *result*, or raise ExternalProcessFailure if it exited non-zero."""
    if not result.ok:
        raise ExternalProcessFailure(message, result.exit_code)
    return result
