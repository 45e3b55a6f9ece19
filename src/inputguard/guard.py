"""InputGuard -- the composition root.

Builds the rule registry, validation engine, type validators and sandboxed
executor once, from explicit configuration, and hands the same read-only
instances to every caller.  There is no module-level instance; the
application constructs one and passes it by reference.

Usage
-----
::

    from inputguard import InputGuard

    guard = InputGuard.default()

    outcome = guard.validators.validate_integer("age", raw_age, 0, 150)
    match outcome:
        case Accepted(value=age):
            ...
        case IntrusionSuspected():
            alert(outcome)
        case Rejected(reason=reason):
            respond_400(reason)

    result = guard.executor.run("/usr/bin/ls", ["-l"], "/srv/data", timeout=5)
"""
from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from inputguard.core.config import ValidationConfig
from inputguard.core.types import RawValue, ValidationOutcome
from inputguard.io.line_reader import BoundedLineReader
from inputguard.isolation.executor import SandboxedExecutor
from inputguard.isolation.sandbox import SandboxPolicy
from inputguard.validation.engine import ValidationEngine
from inputguard.validation.richtext import RichTextSanitizer
from inputguard.validation.rules import RuleRegistry
from inputguard.validation.validators import TypeValidators


class InputGuard:
    """Immutable bundle of the validation and execution components.

    Parameters
    ----------
    config:
        Validation configuration.  Defaults to ``ValidationConfig()``.
    registry:
        Rule catalog.  Defaults to the built-in catalog.
    policy:
        Sandbox policy for the executor.  Defaults to ``SandboxPolicy()``.
    sanitizer:
        Rich-text capability.  Defaults to the bleach-backed sanitizer.
    """

    __slots__ = ("_config", "_registry", "_engine", "_validators", "_executor")

    def __init__(
        self,
        config: ValidationConfig | None = None,
        registry: RuleRegistry | None = None,
        policy: SandboxPolicy | None = None,
        sanitizer: RichTextSanitizer | None = None,
    ) -> None:
        self._config = config or ValidationConfig()
        self._registry = registry or RuleRegistry.default()
        self._engine = ValidationEngine(self._registry, self._config)
        self._validators = TypeValidators(self._engine, sanitizer)
        self._executor = SandboxedExecutor(self._engine, policy)

    @classmethod
    def default(cls) -> InputGuard:
        """Guard with the built-in catalog and default configuration."""
        return cls()

    @classmethod
    def from_catalog(
        cls,
        path: str | Path,
        config: ValidationConfig | None = None,
        policy: SandboxPolicy | None = None,
    ) -> InputGuard:
        """Guard whose catalog extends the built-in one from a TOML file."""
        return cls(config, RuleRegistry.from_toml(path), policy)

    # -- components ---------------------------------------------------------

    @property
    def config(self) -> ValidationConfig:
        return self._config

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def engine(self) -> ValidationEngine:
        return self._engine

    @property
    def validators(self) -> TypeValidators:
        return self._validators

    @property
    def executor(self) -> SandboxedExecutor:
        return self._executor

    # -- shortcuts ----------------------------------------------------------

    def validate(
        self,
        context: str,
        value: RawValue,
        rule_name: str,
        *,
        max_length: int | None = None,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Validate *value* against a named rule; see :class:`ValidationEngine`."""
        return self._engine.validate_input(
            context,
            value,
            rule_name,
            max_length=max_length,
            allow_null_or_empty=allow_null_or_empty,
        )

    def line_reader(self, max_length: int | None = None) -> BoundedLineReader:
        """A canonicalizing reader bounded by *max_length* or the configured default."""
        return BoundedLineReader(
            self._config.max_line_length if max_length is None else max_length,
            canonicalizer=self._engine.canonicalizer,
        )

    def read_line(self, stream: BinaryIO, max_length: int | None = None) -> str | None:
        return self.line_reader(max_length).read_line(stream)

    def __repr__(self) -> str:
        return f"InputGuard(rules={len(self._registry)}, policy={self._executor.policy!r})"
