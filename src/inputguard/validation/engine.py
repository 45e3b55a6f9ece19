"""Validation engine.

Pipeline for one :class:`~inputguard.core.types.ValidationRequest`:

1. **Null / empty policy** -- absent input is accepted as ``""`` only when
   the request allows it.
2. **Canonicalize** -- a value that never converges is intrusion-suspected.
3. **Tripwire** -- rule-specific evasion indicators (path separators in a
   bare file name, shell metacharacters in a command parameter, ...)
   are intrusion-suspected.
4. **Length bounds** -- checked on the canonical value, so encoding cannot
   be used to smuggle an over-long value past the check.
5. **Allow-list** -- the canonical value must match the rule in full.

The engine returns the *canonical* value inside :class:`Accepted`; callers
must use it instead of the raw input.

The engine holds no mutable state.  One instance may be shared across any
number of threads.
"""
from __future__ import annotations

import logging
from typing import Any

from inputguard.core.config import ValidationConfig
from inputguard.core.types import (
    Accepted,
    IntrusionSuspected,
    RawValue,
    Rejected,
    Rule,
    ValidationOutcome,
    ValidationRequest,
)
from inputguard.validation.canonicalizer import Canonicalizer
from inputguard.validation.rules import RuleRegistry

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Canonicalize-then-match validation against a shared rule registry.

    Parameters
    ----------
    registry:
        The read-only rule catalog.
    config:
        Engine configuration (decode-pass limit, global length ceiling).
    """

    def __init__(
        self,
        registry: RuleRegistry,
        config: ValidationConfig | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or ValidationConfig()
        self._canonicalizer = Canonicalizer(self._config.max_decode_passes)

    # -- public properties --------------------------------------------------

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def config(self) -> ValidationConfig:
        return self._config

    @property
    def canonicalizer(self) -> Canonicalizer:
        return self._canonicalizer

    # -- validation ---------------------------------------------------------

    def validate(self, request: ValidationRequest) -> ValidationOutcome:
        """Run *request* through the pipeline and classify the result."""
        rule = request.rule
        context = request.context_label

        raw = request.raw_value
        if raw is None or len(raw) == 0:
            return self._empty(request)

        form = self._canonicalizer.canonicalize(raw)
        if not form.converged:
            return self.suspect(
                context,
                rule,
                f"Value is still encoded after {form.passes} decoding passes",
                codecs=sorted(form.codecs),
                length=len(raw),
            )

        canonical = form.value
        if canonical == "":
            return self._empty(request)

        fragment = rule.trips(canonical)
        if fragment is not None:
            return self.suspect(
                context,
                rule,
                f"Value contains a forbidden sequence {fragment!r}",
                length=len(canonical),
            )

        max_length = min(request.effective_max_length, self._config.max_input_length)
        if len(canonical) > max_length:
            return self.reject(
                context,
                rule,
                f"Value exceeds the maximum length of {max_length}",
                length=len(canonical),
            )
        if len(canonical) < rule.min_length:
            return self.reject(
                context,
                rule,
                f"Value is shorter than the minimum length of {rule.min_length}",
                length=len(canonical),
            )

        if not rule.matches(canonical):
            return self.reject(context, rule, f"Value is not a valid {rule.name}")

        return Accepted(context, canonical)

    def validate_input(
        self,
        context: str,
        value: RawValue,
        rule_name: str,
        *,
        max_length: int | None = None,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Look up *rule_name* and validate *value* against it.

        Raises :class:`~inputguard.core.errors.UnknownRule` for an unknown
        rule name.
        """
        rule = self._registry.lookup(rule_name)
        return self.validate(
            ValidationRequest(
                context_label=context,
                raw_value=value,
                rule=rule,
                allow_null_or_empty=allow_null_or_empty,
                max_length=max_length,
            )
        )

    def is_valid_input(
        self,
        context: str,
        value: RawValue,
        rule_name: str,
        *,
        max_length: int | None = None,
        allow_null_or_empty: bool = False,
    ) -> bool:
        return self.validate_input(
            context,
            value,
            rule_name,
            max_length=max_length,
            allow_null_or_empty=allow_null_or_empty,
        ).ok

    # -- outcome construction ------------------------------------------------
    # Type validators build their outcomes through reject() and suspect()
    # so classification and logging stay in one place.

    def _empty(self, request: ValidationRequest) -> ValidationOutcome:
        if request.allow_null_or_empty:
            return Accepted(request.context_label, "")
        return self.reject(request.context_label, request.rule, "Value is required")

    def reject(
        self,
        context: str,
        rule: Rule | None,
        reason: str,
        **details: Any,
    ) -> Rejected:
        rule_name = rule.name if rule else None
        logger.debug(
            "validation rejected: context=%s rule=%s reason=%s",
            context,
            rule_name,
            reason,
        )
        return Rejected(context, reason, {"rule": rule_name, **details})

    def suspect(
        self,
        context: str,
        rule: Rule | None,
        reason: str,
        **details: Any,
    ) -> IntrusionSuspected:
        rule_name = rule.name if rule else None
        logger.warning(
            "intrusion suspected: context=%s rule=%s reason=%s",
            context,
            rule_name,
            reason,
        )
        return IntrusionSuspected(context, reason, {"rule": rule_name, **details})
