"""Sandboxed external-command execution.

* **SandboxedExecutor** -- verifies executable, arguments and working
  directory, then runs the child with a deadline and bounded output.
* **EnvironmentManager** -- explicit child environment; nothing inherited.
* **SandboxPolicy** / **ResourceLimits** -- immutable execution policy.
"""
from __future__ import annotations

from inputguard.isolation.environment import EnvironmentManager, is_valid_env_name
from inputguard.isolation.executor import (
    ARGUMENT_RULE,
    ExecutionResult,
    SandboxedExecutor,
)
from inputguard.isolation.sandbox import (
    DEFAULT_TIMEOUT_S,
    GRACEFUL_SHUTDOWN_S,
    MAX_TIMEOUT_S,
    MIN_TIMEOUT_S,
    ResourceLimits,
    SandboxPolicy,
)

__all__ = [
    # Execution
    "ARGUMENT_RULE",
    "ExecutionResult",
    "SandboxedExecutor",
    # Environment
    "EnvironmentManager",
    "is_valid_env_name",
    # Policy
    "DEFAULT_TIMEOUT_S",
    "GRACEFUL_SHUTDOWN_S",
    "MAX_TIMEOUT_S",
    "MIN_TIMEOUT_S",
    "ResourceLimits",
    "SandboxPolicy",
]
