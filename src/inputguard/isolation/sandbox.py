"""Sandbox policy for external command execution.

:class:`SandboxPolicy` is a declarative, immutable configuration object.
It does not sandbox anything itself; the
:class:`~inputguard.isolation.executor.SandboxedExecutor` reads it when
preparing and supervising the child process.
"""
from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

DEFAULT_TIMEOUT_S = 30
MIN_TIMEOUT_S = 1
MAX_TIMEOUT_S = 600

# Grace period between terminate and kill.
GRACEFUL_SHUTDOWN_S = 5

MAX_OUTPUT_BYTES = 1024 * 1024  # 1 MiB
MAX_LINE_LENGTH = 8192


@dataclass(frozen=True, slots=True)
class ResourceLimits:
    """POSIX ``setrlimit`` values applied in the child before ``exec``.

    Attributes
    ----------
    max_memory_bytes:
        Address-space limit (``RLIMIT_AS``).  ``None`` means no limit.
    max_cpu_seconds:
        CPU time limit (``RLIMIT_CPU``).  ``None`` means no limit.
    max_file_descriptors:
        Open file limit (``RLIMIT_NOFILE``).  ``None`` means no limit.
    """

    max_memory_bytes: int | None = None
    max_cpu_seconds: int | None = None
    max_file_descriptors: int | None = None


@dataclass(frozen=True, slots=True)
class SandboxPolicy:
    """How the executor supervises a child process.

    Attributes
    ----------
    default_timeout_s:
        Deadline used when a request carries none.
    min_timeout_s / max_timeout_s:
        Every deadline is clamped into this range.
    graceful_shutdown_s:
        Time allowed between ``terminate`` and ``kill`` on timeout.
    max_output_bytes:
        Total bytes of merged stdout/stderr accepted from the child.
    max_line_length:
        Longest single output line accepted from the child.
    disable_core_dumps:
        Set ``RLIMIT_CORE`` to zero in the child.
    resource_limits:
        Further rlimits for the child.
    environment:
        The child's complete environment.  Nothing is inherited from the
        parent; an empty mapping gives the child an empty environment.
    allowed_executables:
        Canonical paths that may be run.  Empty allows any canonical,
        existing executable file.
    """

    default_timeout_s: float = DEFAULT_TIMEOUT_S
    min_timeout_s: float = MIN_TIMEOUT_S
    max_timeout_s: float = MAX_TIMEOUT_S
    graceful_shutdown_s: float = GRACEFUL_SHUTDOWN_S
    max_output_bytes: int = MAX_OUTPUT_BYTES
    max_line_length: int = MAX_LINE_LENGTH
    disable_core_dumps: bool = True
    resource_limits: ResourceLimits = field(default_factory=ResourceLimits)
    environment: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    allowed_executables: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not 0 < self.min_timeout_s <= self.max_timeout_s:
            raise ValueError(
                "need 0 < min_timeout_s <= max_timeout_s, got "
                f"{self.min_timeout_s}..{self.max_timeout_s}"
            )
        if self.max_output_bytes <= 0 or self.max_line_length <= 0:
            raise ValueError("output bounds must be positive")
        # Freeze a caller-supplied dict.
        object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))

    def clamp_timeout(self, timeout: float | None) -> float:
        """Return *timeout* (or the default) clamped to [min, max]."""
        if timeout is None:
            timeout = self.default_timeout_s
        return max(float(self.min_timeout_s), min(float(timeout), float(self.max_timeout_s)))

    @property
    def is_posix(self) -> bool:
        return sys.platform != "win32"
