"""Typed error taxonomy for agentgate.

Every failure the core reports is an :class:`AgentGateError` subclass with a
stable ``code``. This module provides:
- The exception hierarchy (not found, invalid argument, conflict, ...)
- ErrorRegistry for protocol mapping
- gRPC status mapping and a unary handler decorator

The core never formats user-facing text; ``message`` is diagnostic only and
``details`` carries the identifiers involved.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "AgentGateError",
    "ConfigurationError",
    "NotFoundError",
    "InvalidArgumentError",
    "ConflictError",
    "FailedPreconditionError",
    "PermissionDeniedError",
    "LimitExceededError",
    "ExpiredError",
    "StorageError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class AgentGateError(Exception):
    """Base exception for all agentgate failures.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "NOT_FOUND").
        message: Diagnostic description (not meant for end users).
        details: Identifiers and other context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(AgentGateError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class NotFoundError(AgentGateError):
    """Unknown agent, request, grant or subject."""

    code: str = "NOT_FOUND"
    message: str = "Resource not found"


class InvalidArgumentError(AgentGateError):
    """Malformed input, or a request for a directly grantable agent."""

    code: str = "INVALID_ARGUMENT"
    message: str = "Invalid argument"


class ConflictError(AgentGateError):
    """A pending request already exists for the same requester and agent."""

    code: str = "CONFLICT"
    message: str = "Conflicting pending request"


class FailedPreconditionError(AgentGateError):
    """Operation not allowed in the current state (e.g. resolving a terminal request)."""

    code: str = "FAILED_PRECONDITION"
    message: str = "Operation not allowed in current state"


class PermissionDeniedError(AgentGateError):
    """Role rank or scope insufficient for the operation."""

    code: str = "PERMISSION_DENIED"
    message: str = "Permission denied"


class LimitExceededError(AgentGateError):
    """Grant usage cap reached."""

    code: str = "LIMIT_EXCEEDED"
    message: str = "Usage limit exceeded"


class ExpiredError(AgentGateError):
    """Grant used after its expiry."""

    code: str = "EXPIRED"
    message: str = "Grant expired"


class StorageError(AgentGateError):
    """Repository or transaction failure."""

    code: str = "STORAGE_ERROR"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[AgentGateError])


class ErrorRegistry:
    """Registry for mapping error codes back to exception classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[AgentGateError]] = {}

    def register(self, code: str, error_cls: type[AgentGateError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[AgentGateError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[AgentGateError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("QUOTA_ERROR")
        class QuotaError(AgentGateError):
            code = "QUOTA_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    AgentGateError,
    ConfigurationError,
    NotFoundError,
    InvalidArgumentError,
    ConflictError,
    FailedPreconditionError,
    PermissionDeniedError,
    LimitExceededError,
    ExpiredError,
    StorageError,
):
    error_registry.register(_cls.code, _cls)


# ---- gRPC Error Handling Utilities ------------------------------------------


def get_grpc_status_code(error: AgentGateError) -> Any:
    """Map an AgentGateError to a ``grpc.StatusCode``.

    Import grpc locally to avoid hard dependency at module level.
    """
    import grpc

    error_to_status = {
        "NOT_FOUND": grpc.StatusCode.NOT_FOUND,
        "INVALID_ARGUMENT": grpc.StatusCode.INVALID_ARGUMENT,
        "CONFLICT": grpc.StatusCode.ALREADY_EXISTS,
        "FAILED_PRECONDITION": grpc.StatusCode.FAILED_PRECONDITION,
        "PERMISSION_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "LIMIT_EXCEEDED": grpc.StatusCode.RESOURCE_EXHAUSTED,
        "EXPIRED": grpc.StatusCode.FAILED_PRECONDITION,
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
        "STORAGE_ERROR": grpc.StatusCode.UNAVAILABLE,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Decorator for unary gRPC handlers with typed error mapping.

    Catches AgentGateError, sets the ``error-code`` trailing metadata and
    aborts with the mapped status code. Anything else aborts with INTERNAL.

    Usage:
        @grpc_error_handler
        async def SubmitRequest(self, request, context):
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except AgentGateError as e:
            status_code = get_grpc_status_code(e)
            error_message = f"[{e.code}] {e.message}"

            logger.error(
                "%s failed: %s",
                method.__name__,
                error_message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, error_message)
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(
                grpc.StatusCode.INTERNAL,
                f"Unexpected {type(e)}: {e}",
            )
            return

    return wrapper
