"""inputguard shared domain types.

Key design decisions:
* :class:`Rule` is a frozen, slotted dataclass holding an already-compiled
  pattern.  Rules are built once by the registry and shared read-only.
* Validation results are a tagged union of three frozen dataclasses
  (:class:`Accepted`, :class:`Rejected`, :class:`IntrusionSuspected`)
  so callers branch on the type, never on reason text.
* :class:`ExecutionRequest` is a Pydantic model so paths and timeouts are
  coerced and bounds-checked at construction.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, NoReturn

from pydantic import BaseModel, ConfigDict, Field

from inputguard.core.errors import (
    IntrusionDetected,
    InvalidRuleDefinition,
    ValidationRejected,
)

RawValue = str | bytes | None
"""Anything an untrusted source can hand to the engine."""


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Rule:
    """A named allow-list check with length bounds.

    Attributes
    ----------
    name:
        Catalog key, e.g. ``"Email"``.
    pattern:
        Compiled allow-list.  Always applied with ``fullmatch``; partial
        matches never pass.
    min_length / max_length:
        Bounds on the *canonical* value.
    tripwire:
        Optional compiled pattern.  A canonical value in which it is
        found anywhere is classified as intrusion-suspected rather than
        merely rejected.
    """

    name: str
    pattern: re.Pattern[str]
    min_length: int = 0
    max_length: int = 4096
    tripwire: re.Pattern[str] | None = None

    def __post_init__(self) -> None:
        if self.min_length < 0 or self.min_length > self.max_length:
            raise InvalidRuleDefinition(
                f"Rule {self.name!r}: need 0 <= min_length <= max_length, "
                f"got {self.min_length}..{self.max_length}",
                details={"rule": self.name},
            )

    def matches(self, value: str) -> bool:
        """Return ``True`` if *value* matches the whole allow-list pattern."""
        return self.pattern.fullmatch(value) is not None

    def trips(self, value: str) -> str | None:
        """Return the offending fragment if the tripwire fires, else ``None``."""
        if self.tripwire is None:
            return None
        m = self.tripwire.search(value)
        return m.group() if m else None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ValidationRequest:
    """A single value to validate against a single rule.

    ``max_length`` may tighten the rule's own bound for this call, never
    loosen it.
    """

    context_label: str
    raw_value: RawValue
    rule: Rule
    allow_null_or_empty: bool = False
    max_length: int | None = None

    @property
    def effective_max_length(self) -> int:
        if self.max_length is None:
            return self.rule.max_length
        return min(self.rule.max_length, self.max_length)


class ExecutionRequest(BaseModel):
    """An external command to run inside the sandbox.

    ``executable_path`` is kept as the exact string the caller supplied and
    must already be canonical; the executor refuses anything that differs
    from its own resolved form.  It is never coerced through ``Path``,
    which would silently drop ``.`` segments.
    """

    model_config = ConfigDict(frozen=True)

    executable_path: str
    arguments: tuple[str, ...] = ()
    working_directory: Path
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Wall-clock limit in seconds; policy default when None.",
    )
    context: str = "execute"


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """Canonical (directory, name, content) triple of an accepted upload."""

    directory: str
    name: str
    content: bytes


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Accepted:
    """The value passed.  ``value`` is canonical; use it, not the raw input."""

    context: str
    value: Any

    ok: ClassVar[bool] = True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True, slots=True)
class Rejected:
    """The value is malformed for its declared type."""

    context: str
    reason: str
    details: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    ok: ClassVar[bool] = False

    def unwrap(self) -> NoReturn:
        raise ValidationRejected(
            f"{self.context}: {self.reason}",
            details={"context": self.context, **self.details},
        )


@dataclass(frozen=True, slots=True)
class IntrusionSuspected:
    """The value's shape indicates deliberate evasion.

    ``reason`` is for audit logs; it is not included in the raised
    error's external message.
    """

    context: str
    reason: str
    details: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    ok: ClassVar[bool] = False

    def unwrap(self) -> NoReturn:
        raise IntrusionDetected(
            details={"context": self.context, "reason": self.reason, **self.details},
        )


ValidationOutcome = Accepted | Rejected | IntrusionSuspected


def is_valid(outcome: ValidationOutcome) -> bool:
    """Boolean form of an outcome: ``True`` only for :class:`Accepted`."""
    return isinstance(outcome, Accepted)
