"""inputguard error-code hierarchy.

Every failure the engine, the stream reader or the sandboxed executor can
raise is a concrete subclass of :class:`InputGuardError` carrying a stable
error code.

Hierarchy
---------
::

    InputGuardError
    +-- ValidationError      (IG-E1xx)  input fails a declared rule
    +-- IntrusionError       (IG-E2xx)  input shape indicates evasion
    +-- ConfigurationError   (IG-E3xx)  caller / catalog contract violation
    +-- ExecutorFailure      (IG-E4xx)  sandboxed execution failed

Validation results are normally returned as outcome values (see
:mod:`inputguard.core.types`); the ``ValidationError`` and ``IntrusionError``
families exist for callers that prefer the raising form via
:meth:`~inputguard.core.types.Rejected.unwrap`.

Usage
-----
Catch by category::

    try:
        output = executor.execute(request)
    except ExecutorFailure as exc:
        respond(exc.to_dict())          # generic, safe for untrusted callers
        log.warning("exec failed: %s", exc.cause)
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class InputGuardError(Exception):
    """Base exception for all inputguard errors.

    Attributes
    ----------
    code : str
        Error code, e.g. ``"IG-E100"``.
    http_status : int
        Recommended HTTP status code for this error.
    message : str
        Description that is safe to show to an untrusted caller.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the caller.
    """

    code: str = "IG-E000"
    http_status: int = 500
    message: str = "Unknown inputguard error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for an external response body."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# Category base classes
# ===================================================================

class ValidationError(InputGuardError):
    """IG-E1xx -- Input is well-formed data but fails a declared rule."""

    code = "IG-E1XX"
    http_status = 400


class IntrusionError(InputGuardError):
    """IG-E2xx -- Input shape indicates a deliberate evasion attempt."""

    code = "IG-E2XX"
    http_status = 400


class ConfigurationError(InputGuardError):
    """IG-E3xx -- Programming or catalog contract violation.

    Never attributable to untrusted input; always fatal to the calling
    code path.
    """

    code = "IG-E3XX"
    http_status = 500


class ExecutorFailure(InputGuardError):
    """IG-E4xx -- Any failure during sandboxed execution.

    ``message`` is always the generic ``"Execution failure"`` so it can be
    surfaced outward.  The diagnostic text lives in :attr:`cause`, which
    is deliberately excluded from :meth:`to_dict`.
    """

    code = "IG-E4XX"
    http_status = 500
    message = "Execution failure"

    def __init__(
        self,
        cause: str = "",
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.cause = cause
        super().__init__(None, details=details, resolution=resolution)

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, cause={self.cause!r})"


# ===================================================================
# IG-E1xx  Validation
# ===================================================================

class ValidationRejected(ValidationError):
    """IG-E100 -- The value failed its declared rule."""

    code = "IG-E100"
    message = "Invalid input"
    resolution = "Correct the value and resubmit."


class LineTooLong(ValidationRejected):
    """IG-E101 -- A line exceeded its read bound before a newline was found."""

    code = "IG-E101"
    http_status = 413
    message = "Line exceeds the maximum allowed length"
    resolution = "Send shorter lines or raise the configured line bound."


# ===================================================================
# IG-E2xx  Intrusion
# ===================================================================

class IntrusionDetected(IntrusionError):
    """IG-E200 -- Input was classified as an evasion attempt."""

    code = "IG-E200"
    message = "Invalid input"


# ===================================================================
# IG-E3xx  Configuration
# ===================================================================

class UnknownRule(ConfigurationError):
    """IG-E300 -- A rule name was requested that the registry does not hold."""

    code = "IG-E300"
    message = "Unknown validation rule"
    resolution = "Register the rule in the catalog or fix the rule name."


class InvalidRuleDefinition(ConfigurationError):
    """IG-E301 -- A catalog entry has a bad pattern or inconsistent bounds."""

    code = "IG-E301"
    message = "Invalid rule definition"
    resolution = "Fix the pattern or make min_length <= max_length."


class ReadLimitInvalid(ConfigurationError):
    """IG-E302 -- A bounded read was requested with a non-positive limit."""

    code = "IG-E302"
    message = "Read limit must be a positive number of bytes"


# ===================================================================
# IG-E4xx  Executor
# ===================================================================

class ExecutablePathInvalid(ExecutorFailure):
    """IG-E400 -- Executable is not canonical, missing or not allowed."""

    code = "IG-E400"


class ArgumentRejected(ExecutorFailure):
    """IG-E401 -- An argument failed the system-command parameter rule."""

    code = "IG-E401"
    http_status = 400


class WorkingDirectoryMissing(ExecutorFailure):
    """IG-E402 -- The working directory does not exist."""

    code = "IG-E402"


class SpawnFailure(ExecutorFailure):
    """IG-E403 -- The OS refused to start the process, or reading it failed."""

    code = "IG-E403"
    http_status = 502


class ExecutionTimeout(ExecutorFailure):
    """IG-E404 -- The process did not finish before its deadline and was killed."""

    code = "IG-E404"
    http_status = 504


class OutputLimitExceeded(ExecutorFailure):
    """IG-E405 -- The process produced an over-long line or too much output."""

    code = "IG-E405"
    http_status = 502


class EnvironmentInvalid(ExecutorFailure):
    """IG-E406 -- The sandbox policy declares an unusable child environment."""

    code = "IG-E406"


# ---------------------------------------------------------------------------
# Lookup helper
# ---------------------------------------------------------------------------

_CODE_MAP: dict[str, type[InputGuardError]] = {
    cls.code: cls
    for cls in [
        # E1xx
        ValidationRejected,
        LineTooLong,
        # E2xx
        IntrusionDetected,
        # E3xx
        UnknownRule,
        InvalidRuleDefinition,
        ReadLimitInvalid,
        # E4xx
        ExecutablePathInvalid,
        ArgumentRejected,
        WorkingDirectoryMissing,
        SpawnFailure,
        ExecutionTimeout,
        OutputLimitExceeded,
        EnvironmentInvalid,
    ]
}


def error_from_code(code: str, message: str | None = None) -> InputGuardError:
    """Instantiate the correct exception class for an inputguard error code.

    For executor failures *message* becomes the internal ``cause``; their
    external message is always generic.

    Raises
    ------
    KeyError
        If *code* is not a recognised error code.
    """
    cls = _CODE_MAP[code]
    if issubclass(cls, ExecutorFailure):
        return cls(message or "")
    return cls(message) if message else cls()
