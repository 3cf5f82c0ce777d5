"""qmdsync error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index tool
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Index tool (3xxx)
    TOOL_NOT_FOUND = 3001
    TOOL_TIMEOUT = 3002
    TOOL_PARSE_ERROR = 3003
    TOOL_COMMAND_ERROR = 3004
    TOOL_UNKNOWN_ERROR = 3005

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class QmdSyncError(Exception):
    """Base error with structured context for CLI and JSON output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'TOOL_TIMEOUT')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class ConfigError(QmdSyncError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class IndexClientError(QmdSyncError):
    """Failure invoking the external index tool.

    ``kind`` names the failure class: NotFound, Timeout, ParseError,
    CommandError or Unknown.
    """

    kind = "Unknown"


class ToolNotFoundError(IndexClientError):
    kind = "NotFound"

    @classmethod
    def at(cls, tool_path: str) -> "ToolNotFoundError":
        return cls(
            code=ErrorCode.TOOL_NOT_FOUND,
            message=f"qmd not found at: {tool_path}",
            details={"tool_path": tool_path},
        )


class ToolTimeoutError(IndexClientError):
    kind = "Timeout"

    @classmethod
    def after(cls, command: str, timeout_sec: float) -> "ToolTimeoutError":
        return cls(
            code=ErrorCode.TOOL_TIMEOUT,
            message=f"'{command}' timed out after {timeout_sec:g}s",
            retryable=True,
            details={"command": command, "timeout_sec": timeout_sec},
        )


class OutputParseError(IndexClientError):
    kind = "ParseError"

    @classmethod
    def invalid_json(cls, reason: str, output: str) -> "OutputParseError":
        return cls(
            code=ErrorCode.TOOL_PARSE_ERROR,
            message=f"Failed to parse qmd response: {reason}",
            details={"reason": reason, "output": output[:500]},
        )


class ToolCommandError(IndexClientError):
    kind = "CommandError"

    @classmethod
    def from_stderr(cls, stderr: str, returncode: int | None) -> "ToolCommandError":
        return cls(
            code=ErrorCode.TOOL_COMMAND_ERROR,
            message=stderr.strip(),
            details={"returncode": returncode},
        )


class UnknownToolError(IndexClientError):
    kind = "Unknown"

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "UnknownToolError":
        return cls(
            code=ErrorCode.TOOL_UNKNOWN_ERROR,
            message=reason or "Unknown error occurred",
            details=details,
        )
