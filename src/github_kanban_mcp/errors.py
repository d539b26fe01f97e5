"""Tool error types and protocol mapping helpers.

Every failure raised while serving a tool call is a ToolError (or is wrapped into
one by the dispatcher). The server returns it to the caller as a JSON error envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mcp.types import (INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST,
                       METHOD_NOT_FOUND)

INVALID_PARAMS_CODE = "InvalidParams"
INVALID_REQUEST_CODE = "InvalidRequest"
METHOD_NOT_FOUND_CODE = "MethodNotFound"
INTERNAL_CODE = "Internal"
CONFIG_CODE = "Config"

_JSONRPC_CODES: dict[str, int] = {
    INVALID_PARAMS_CODE: INVALID_PARAMS,
    INVALID_REQUEST_CODE: INVALID_REQUEST,
    METHOD_NOT_FOUND_CODE: METHOD_NOT_FOUND,
    INTERNAL_CODE: INTERNAL_ERROR,
    CONFIG_CODE: INTERNAL_ERROR,
}


@dataclass(frozen=True, slots=True)
class ToolError(Exception):
    """A classified error that can be reported to the caller as-is.

    `message` should carry the external tool's own message verbatim when there is one.
    """

    code: str
    message: str
    hint: str | None = None
    status_code: int | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def jsonrpc_code(self) -> int:
        """Return the JSON-RPC error code for this error."""
        return _JSONRPC_CODES.get(self.code, INTERNAL_ERROR)


class InvalidParamsError(ToolError):
    """Caller-supplied arguments failed a required-field or format check."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(code=INVALID_PARAMS_CODE, message=message, hint=hint)


class IdentityError(ToolError):
    """The target repository could not be resolved."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(code=INVALID_REQUEST_CODE, message=message, hint=hint)


class MethodNotFoundError(ToolError):
    """The requested tool name is not one of the served tools."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(code=METHOD_NOT_FOUND_CODE, message=message, hint=hint)


class GatewayError(ToolError):
    """The external tracker call failed (non-zero exit, HTTP error, bad output).

    `status_code` holds the CLI exit code or the HTTP status when known.
    """

    def __init__(self, message: str, hint: str | None = None, status_code: int | None = None) -> None:
        super().__init__(code=INTERNAL_CODE, message=message, hint=hint, status_code=status_code)


class ConfigError(ToolError):
    """Host configuration is missing or invalid."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(code=CONFIG_CODE, message=message, hint=hint)


def internal_error(message: str = "Internal error") -> ToolError:
    """Error for unexpected failures."""
    return ToolError(code=INTERNAL_CODE, message=message)


def to_error_result(err: ToolError) -> dict[str, Any]:
    """Build the error envelope returned to the caller for a failed tool call."""
    out: dict[str, Any] = {
        "ok": False,
        "code": err.code,
        "jsonrpc_code": err.jsonrpc_code,
        "message": err.message,
    }
    if err.hint:
        out["hint"] = err.hint
    if err.status_code is not None:
        out["status_code"] = err.status_code
    return out
