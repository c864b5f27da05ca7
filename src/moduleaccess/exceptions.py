"""Unified exception hierarchy for moduleaccess.

All errors raised by the engine inherit from ModuleAccessError. This module
provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for mapping codes back to exception classes

Note that an unknown or inactive hierarchy path is NOT an exception: it is
reported as a Deny decision with reason ``NodeNotFound``.

Usage:
    from moduleaccess.exceptions import InvariantViolation

    try:
        store.assign_grant("manager", node_id, Scope.TEAM)
    except InvariantViolation as e:
        return {"error": e.code, "message": e.message, **e.details}
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "ModuleAccessError",
    "ConfigurationError",
    "InvariantViolation",
    "PermissionLookupFailure",
    "CacheRefreshFailure",
    "StorageError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]


# ---- Exception Hierarchy ----------------------------------------------------


class ModuleAccessError(Exception):
    """Base exception for the access resolution engine.

    Attributes:
        code: Stable error code string (e.g. "INVARIANT_VIOLATION").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(ModuleAccessError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class InvariantViolation(ModuleAccessError):
    """A hierarchy, grant or requirement write would break a data invariant.

    Raised at the store boundary; such writes never reach the resolvers.
    """

    code: str = "INVARIANT_VIOLATION"
    message: str = "Write rejected: data invariant violated"


class PermissionLookupFailure(ModuleAccessError):
    """The external permission predicate raised or timed out."""

    code: str = "PERMISSION_LOOKUP_FAILURE"
    message: str = "Permission lookup failed"


class CacheRefreshFailure(ModuleAccessError):
    """Refreshing a cache entry failed and no usable stale value exists."""

    code: str = "CACHE_REFRESH_FAILURE"
    message: str = "Cache refresh failed"


class StorageError(ModuleAccessError):
    """Repository read or write failure."""

    code: str = "STORAGE_ERROR"


# ---- Error Registry ---------------------------------------------------------

_E = TypeVar("_E", bound=type[ModuleAccessError])


class ErrorRegistry:
    """Registry for mapping stable error codes to exception classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[ModuleAccessError]] = {}

    def register(self, code: str, error_cls: type[ModuleAccessError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[ModuleAccessError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[ModuleAccessError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("PLAN_RESTRICTION")
        class PlanRestrictionError(ModuleAccessError):
            code = "PLAN_RESTRICTION"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    ModuleAccessError,
    ConfigurationError,
    InvariantViolation,
    PermissionLookupFailure,
    CacheRefreshFailure,
    StorageError,
):
    error_registry.register(_cls.code, _cls)
