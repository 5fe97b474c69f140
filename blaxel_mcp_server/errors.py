"""Failure taxonomy for tool handlers.

Every ``ToolError`` raised by a handler becomes exactly one error-flagged
tool result whose text is the exception message. ``code`` is the stable
failure kind reported in the audit log. Nothing here is retried.
"""

from __future__ import annotations

from typing import Optional


class ToolError(Exception):
    """Base class for failures surfaced verbatim to the MCP caller."""

    code = "tool_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ClientUnavailableError(ToolError):
    code = "client_unavailable"

    def __init__(self, message: str = "SDK client not initialized") -> None:
        super().__init__(message)


class ToolValidationError(ToolError):
    code = "invalid_arguments"


class RemoteCallError(ToolError):
    """Transport-level failure talking to the Blaxel API."""

    code = "remote_unreachable"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class RemoteStatusError(ToolError):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def code(self) -> str:
        return "conflict" if self.status_code == 409 else "upstream_status"


class NotFoundError(ToolError):
    code = "record_not_found"


class ExternalProcessError(ToolError):
    """Non-zero exit from the ``bl`` CLI; message is the captured output."""

    code = "cli_failed"

    def __init__(self, output: str, returncode: int) -> None:
        super().__init__(output)
        self.returncode = returncode


class ClientConfigError(Exception):
    """Raised at startup when the API client cannot be built."""
