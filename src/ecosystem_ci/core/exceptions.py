from __future__ import annotations

from pathlib import Path
from typing import Any


class EcosystemCIError(Exception):
    """Base exception for all ecosystem-ci errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"UNKNOWN_SCRIPT"``).
        details: Arbitrary key/value context about the error.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}

    @property
    def is_retryable(self) -> bool:
        """Whether the operation that raised this error can be retried."""
        return False


class ConfigurationError(EcosystemCIError): ...


class AgentDetectionError(EcosystemCIError): ...


class UnsupportedAgentError(EcosystemCIError): ...


class UnsupportedPackageManagerError(EcosystemCIError): ...


class ConflictingOverrideError(EcosystemCIError): ...


class InvalidTaskError(EcosystemCIError): ...


class UnknownScriptError(InvalidTaskError): ...


class UpstreamQueryError(EcosystemCIError): ...


class SuiteNotFoundError(EcosystemCIError): ...


class BuildDefinitionError(EcosystemCIError): ...


# ---------------------------------------------------------------------------
# Child process failures
# ---------------------------------------------------------------------------


class CommandFailedError(EcosystemCIError):
    """A shelled command exited with a non-zero status.

    The combined stdout/stderr of the child is kept on ``output`` so the
    failure can be diagnosed (and pattern-matched) after the fact.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        cwd: Path | str | None = None,
        exit_code: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(
            message,
            code="COMMAND_FAILED",
            details={"command": command, "cwd": str(cwd) if cwd else None, "exit_code": exit_code},
        )
        self.command = command
        self.cwd = cwd
        self.exit_code = exit_code
        self.output = output


class OutdatedLockfileError(CommandFailedError):
    """A frozen install was rejected because the lockfile is out of date.

    Retryable exactly once, with a non-frozen install.
    """

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return True
