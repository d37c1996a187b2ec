"""Domain errors for discourse-updater."""

from typing import Optional


class UpdaterError(RuntimeError):
    """Raised when the update run cannot continue safely."""


class ConfigurationError(UpdaterError):
    """Raised for invalid fleet or environment configuration, before any remote action."""


class TransportError(UpdaterError):
    """Raised when a remote command cannot be executed or exits non-zero."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
        interrupted: bool = False,
    ):
        super().__init__(message)
        self.host = host
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.interrupted = interrupted


class StageFailure(UpdaterError):
    """Raised inside an update session when a required stage fails."""

    def __init__(self, stage, reason: str, interrupted: bool = False):
        super().__init__(f"{stage.label} failed: {reason}")
        self.stage = stage
        self.reason = reason
        self.interrupted = interrupted


class ReportingWarning(UpdaterError):
    """Raised when a changelog post is skipped. Logged, never fatal."""
