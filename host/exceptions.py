"""Exception hierarchy and helpers for the plugin host core.

This module provides a consistent exception model used by host components:

- ``PluginHostError`` as the base class with error code, context and root cause.
- Subclasses for config, manifest validation, adapter resolution, lifecycle
  hooks and invalid state transitions.
- Utility helpers to wrap external exceptions and to format errors.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Mapping, TypeVar

TPluginHostError = TypeVar("TPluginHostError", bound="PluginHostError")


class PluginHostError(Exception):
    """Base exception for all host-level errors.

    Attributes:
        message: Human-readable error message.
        code: Stable error code for programmatic processing.
        context: Extra metadata useful for debugging and logging.
        cause: Original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        code: str = "PLUGIN_HOST_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message: str = message
        self.code: str = code
        self.context: dict[str, Any] = dict(context) if context is not None else {}
        self.cause: Exception | None = cause

        super().__init__(message)

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return a formatted, readable exception string."""
        return format_exception(self)


class ConfigError(PluginHostError):
    """Host configuration related error."""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class ManifestValidationError(PluginHostError):
    """A manifest failed validation and cannot be loaded.

    Attributes:
        errors: Blocking validation errors.
        warnings: Non-blocking findings reported alongside the errors.
    """

    def __init__(
        self,
        message: str,
        errors: Sequence[str] = (),
        warnings: Sequence[str] = (),
        code: str = "MANIFEST_INVALID",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.errors: list[str] = list(errors)
        self.warnings: list[str] = list(warnings)
        merged = dict(context or {})
        merged.setdefault("errors", self.errors)
        super().__init__(message=message, code=code, context=merged, cause=cause)


class AdapterNotFoundError(PluginHostError):
    """No compatibility adapter is registered for a plugin's target version."""

    def __init__(
        self,
        message: str,
        code: str = "ADAPTER_NOT_FOUND",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class LifecycleHookError(PluginHostError):
    """A plugin lifecycle hook raised; the original exception is the cause."""

    def __init__(
        self,
        message: str,
        hook: str = "",
        plugin: str = "",
        code: str = "LIFECYCLE_HOOK_FAILED",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.hook = hook
        self.plugin = plugin
        merged = dict(context or {})
        merged.setdefault("hook", hook)
        merged.setdefault("plugin", plugin)
        super().__init__(message=message, code=code, context=merged, cause=cause)


class InvalidTransitionError(PluginHostError):
    """A lifecycle transition was requested from a state that does not allow it."""

    def __init__(
        self,
        message: str,
        code: str = "INVALID_TRANSITION",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class VersionDetectionFailure(PluginHostError):
    """Host version could not be determined from any source.

    Raised only inside the detector, which recovers by assuming the oldest
    supported host version.
    """

    def __init__(
        self,
        message: str,
        code: str = "VERSION_DETECTION_FAILED",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


def wrap_exception(
    exc: Exception,
    error_class: type[TPluginHostError],
    message: str,
    *,
    code: str | None = None,
    context: Mapping[str, Any] | None = None,
    **extra: Any,
) -> TPluginHostError:
    """Wrap an external exception with a host exception class.

    Args:
        exc: Original exception raised by a plugin or lower layer.
        error_class: Target ``PluginHostError`` subclass to construct.
        message: Message for the wrapped exception.
        code: Optional explicit error code overriding class default.
        context: Optional context payload.
        **extra: Additional keyword arguments for ``error_class``.

    Returns:
        An instance of ``error_class`` that chains ``exc`` as its cause.
    """
    kwargs: dict[str, Any] = {"context": context, "cause": exc, **extra}
    if code is not None:
        kwargs["code"] = code
    return error_class(message, **kwargs)


def format_exception(exc: BaseException) -> str:
    """Format exception into a readable one-line text.

    For ``PluginHostError`` it includes code, message, context and cause.
    For generic exceptions, it returns ``<Type>: <message>``.
    """
    if isinstance(exc, PluginHostError):
        base = f"[{exc.code}] {exc.message}"
        context_part = ""
        if exc.context:
            context_items = ", ".join(
                f"{key}={value!r}" for key, value in sorted(exc.context.items())
            )
            context_part = f" | context: {context_items}"

        cause_part = ""
        if exc.cause is not None:
            cause_part = f" | cause: {type(exc.cause).__name__}: {exc.cause}"

        return f"{base}{context_part}{cause_part}"

    return f"{type(exc).__name__}: {exc}"


__all__ = [
    "PluginHostError",
    "ConfigError",
    "ManifestValidationError",
    "AdapterNotFoundError",
    "LifecycleHookError",
    "InvalidTransitionError",
    "VersionDetectionFailure",
    "wrap_exception",
    "format_exception",
]
