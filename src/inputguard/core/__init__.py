"""Core types, errors and configuration shared by every inputguard component."""
from __future__ import annotations

from inputguard.core.config import DEFAULT_DATE_FORMAT, ValidationConfig
from inputguard.core.errors import (
    ConfigurationError,
    ExecutorFailure,
    InputGuardError,
    IntrusionDetected,
    IntrusionError,
    ValidationError,
    ValidationRejected,
)
from inputguard.core.types import (
    Accepted,
    ExecutionRequest,
    IntrusionSuspected,
    Rejected,
    Rule,
    UploadedFile,
    ValidationOutcome,
    ValidationRequest,
    is_valid,
)

__all__ = [
    "Accepted",
    "ConfigurationError",
    "DEFAULT_DATE_FORMAT",
    "ExecutionRequest",
    "ExecutorFailure",
    "InputGuardError",
    "IntrusionDetected",
    "IntrusionError",
    "IntrusionSuspected",
    "Rejected",
    "Rule",
    "UploadedFile",
    "ValidationConfig",
    "ValidationError",
    "ValidationOutcome",
    "ValidationRejected",
    "ValidationRequest",
    "is_valid",
]
