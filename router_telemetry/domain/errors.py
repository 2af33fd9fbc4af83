"""
Error taxonomy for the telemetry core.

Every error carries an ``ErrorKind`` tag plus the structured context needed
to report it (command, exit code, job id).
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    CONNECTION = "connection"
    COMMAND = "command"
    COMMAND_TIMEOUT = "command_timeout"
    PARSE_SKIP = "parse_skip"
    JOB_EXECUTION = "job_execution"
    INVALID_SCHEDULE = "invalid_schedule"


class RouterTelemetryError(Exception):
    """Base class for all telemetry errors."""

    kind: ErrorKind = ErrorKind.COMMAND


class SSHConnectionError(RouterTelemetryError):
    """Session could not be established, or the transport was lost."""

    kind = ErrorKind.CONNECTION

    def __init__(self, message: str, host: Optional[str] = None, port: Optional[int] = None):
        super().__init__(message)
        self.host = host
        self.port = port


class NotConnectedError(SSHConnectionError):
    """A command was issued while no session is active."""

    def __init__(self, message: str = "SSH channel is not connected"):
        super().__init__(message)


class CommandError(RouterTelemetryError):
    """Remote command exited non-zero with error output."""

    kind = ErrorKind.COMMAND

    def __init__(self, command: str, exit_code: Optional[int], stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command failed with code {exit_code}: {stderr.strip()}")


class CommandTimeoutError(CommandError):
    """Remote command did not finish within its timeout."""

    kind = ErrorKind.COMMAND_TIMEOUT

    def __init__(self, command: str, timeout: float):
        self.timeout = timeout
        super().__init__(command, None, f"timed out after {timeout}s")


class ParseSkip(RouterTelemetryError):
    """A line did not match the expected shape; callers drop it."""

    kind = ErrorKind.PARSE_SKIP

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"{reason}: {line!r}")


class JobExecutionError(RouterTelemetryError):
    """A background job body raised."""

    kind = ErrorKind.JOB_EXECUTION

    def __init__(self, job_id: str, cause: BaseException):
        self.job_id = job_id
        self.cause = cause
        message = str(cause) or type(cause).__name__
        super().__init__(f"Job '{job_id}' failed: {message}")


class InvalidScheduleError(RouterTelemetryError, ValueError):
    """Cron expression could not be parsed."""

    kind = ErrorKind.INVALID_SCHEDULE

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid schedule '{expression}': {reason}")
