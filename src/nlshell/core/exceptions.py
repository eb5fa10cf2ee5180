"""Exception hierarchy for nlshell.

Every error carries a kind, a severity and optional structured context so
that it can be rendered by ``log_error`` without losing detail.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Category of an error, used for routing and rendering."""

    VALIDATION = "validation"
    PROVIDER = "provider"
    EXECUTION = "execution"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    PERMISSION = "permission"
    PLUGIN = "plugin"
    CONTEXT = "context"
    UPDATE = "update"
    SAFETY = "safety"
    TIMEOUT = "timeout"
    AUTH = "auth"
    INTERNAL = "internal"

    @property
    def label(self) -> str:
        if self is ErrorKind.AUTH:
            return "Authentication"
        return self.value.capitalize()


class ErrorSeverity(str, Enum):
    """How serious an error is; maps onto a logging level."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class NLShellError(Exception):
    """Base exception for all nlshell errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    severity: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        severity: ErrorSeverity | None = None,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
        component: str = "",
        operation: str = "",
        user_id: str = "",
        session_id: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        if severity is not None:
            self.severity = severity
        self.cause = cause
        self.context: dict[str, Any] = dict(context or {})
        self.timestamp = datetime.now(timezone.utc)
        self.component = component
        self.operation = operation
        self.user_id = user_id
        self.session_id = session_id
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"[{self.kind.label}] {self.message}: {self.cause}"
        return f"[{self.kind.label}] {self.message}"

    def with_context(self, key: str, value: Any) -> NLShellError:
        self.context[key] = value
        return self

    def with_component(self, component: str) -> NLShellError:
        self.component = component
        return self

    def with_operation(self, operation: str) -> NLShellError:
        self.operation = operation
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flatten the error into a JSON-friendly mapping for structured logs."""
        data: dict[str, Any] = {
            "type": self.kind.label,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        if self.context:
            data["context"] = dict(self.context)
        for name in ("component", "operation", "user_id", "session_id"):
            value = getattr(self, name)
            if value:
                data[name] = value
        return data


class ValidationError(NLShellError):
    """Raised when an input or state fails validation."""

    kind = ErrorKind.VALIDATION


class CacheValidationError(ValidationError):
    """Raised when a value cannot be sized or stored by a cache."""


class CacheEntryTooLargeError(CacheValidationError):
    """Raised when a single value exceeds the store's byte budget."""


class ConfigurationError(NLShellError):
    """Raised on fatal misconfiguration at startup."""

    kind = ErrorKind.CONFIGURATION


class PluginError(NLShellError):
    """A context plugin failed; downgraded to a warning by the registry."""

    kind = ErrorKind.PLUGIN
    severity = ErrorSeverity.WARNING


class PluginRegistrationError(ValidationError):
    """Raised when a plugin is missing or its name is already registered."""


class PluginNotFoundError(ValidationError):
    """Raised when looking up or removing an unknown plugin name."""


class ContextError(NLShellError):
    """Raised when context gathering cannot proceed."""

    kind = ErrorKind.CONTEXT


class OperationCancelledError(ContextError):
    """Raised when the caller's cancel token fires mid-operation."""

    severity = ErrorSeverity.INFO

    def __init__(self, message: str = "operation cancelled", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class PersistenceError(NLShellError):
    """Raised when the statistics document cannot be read or written."""

    kind = ErrorKind.INTERNAL


__all__ = [
    "ErrorKind",
    "ErrorSeverity",
    "NLShellError",
    "ValidationError",
    "CacheValidationError",
    "CacheEntryTooLargeError",
    "ConfigurationError",
    "PluginError",
    "PluginRegistrationError",
    "PluginNotFoundError",
    "ContextError",
    "OperationCancelledError",
    "PersistenceError",
]
