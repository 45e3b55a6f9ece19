"""inputguard -- untrusted-input validation and sandboxed command execution.

Components
----------
1. Canonicalization and rule catalog (:mod:`inputguard.validation`)
2. Type validators (:mod:`inputguard.validation.validators`)
3. Bounded stream reads (:mod:`inputguard.io`)
4. Sandboxed execution (:mod:`inputguard.isolation`)

:class:`InputGuard` wires them together from explicit configuration.
"""
from __future__ import annotations

__version__ = "0.1.0"

from inputguard.core.config import ValidationConfig
from inputguard.core.errors import (
    ArgumentRejected,
    ConfigurationError,
    EnvironmentInvalid,
    ExecutablePathInvalid,
    ExecutionTimeout,
    ExecutorFailure,
    InputGuardError,
    IntrusionDetected,
    IntrusionError,
    InvalidRuleDefinition,
    LineTooLong,
    OutputLimitExceeded,
    ReadLimitInvalid,
    SpawnFailure,
    UnknownRule,
    ValidationError,
    ValidationRejected,
    WorkingDirectoryMissing,
    error_from_code,
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
from inputguard.guard import InputGuard
from inputguard.io import BoundedLineReader, read_line
from inputguard.isolation import (
    EnvironmentManager,
    ExecutionResult,
    ResourceLimits,
    SandboxedExecutor,
    SandboxPolicy,
)
from inputguard.validation import (
    BleachSanitizer,
    CanonicalForm,
    Canonicalizer,
    RichTextSanitizer,
    RuleDefinition,
    RuleRegistry,
    TypeValidators,
    ValidationEngine,
    canonicalize,
)

__all__ = [
    "__version__",
    # Composition root
    "InputGuard",
    # Configuration
    "ValidationConfig",
    "SandboxPolicy",
    "ResourceLimits",
    # Types
    "Accepted",
    "ExecutionRequest",
    "ExecutionResult",
    "IntrusionSuspected",
    "Rejected",
    "Rule",
    "UploadedFile",
    "ValidationOutcome",
    "ValidationRequest",
    "is_valid",
    # Components
    "BleachSanitizer",
    "BoundedLineReader",
    "CanonicalForm",
    "Canonicalizer",
    "EnvironmentManager",
    "RichTextSanitizer",
    "RuleDefinition",
    "RuleRegistry",
    "SandboxedExecutor",
    "TypeValidators",
    "ValidationEngine",
    "canonicalize",
    "read_line",
    # Errors
    "InputGuardError",
    "ValidationError",
    "ValidationRejected",
    "LineTooLong",
    "IntrusionError",
    "IntrusionDetected",
    "ConfigurationError",
    "UnknownRule",
    "InvalidRuleDefinition",
    "ReadLimitInvalid",
    "ExecutorFailure",
    "ExecutablePathInvalid",
    "ArgumentRejected",
    "WorkingDirectoryMissing",
    "SpawnFailure",
    "ExecutionTimeout",
    "OutputLimitExceeded",
    "EnvironmentInvalid",
    "error_from_code",
]
