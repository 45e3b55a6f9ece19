"""Canonicalize-then-match validation of untrusted input."""
from __future__ import annotations

from inputguard.validation.canonicalizer import (
    DEFAULT_MAX_PASSES,
    CanonicalForm,
    Canonicalizer,
    canonicalize,
)
from inputguard.validation.engine import ValidationEngine
from inputguard.validation.richtext import BleachSanitizer, RichTextSanitizer
from inputguard.validation.rules import DEFAULT_RULES, RuleDefinition, RuleRegistry
from inputguard.validation.validators import (
    CARD_NUMBER_LENGTHS,
    TypeValidators,
    luhn_valid,
)

__all__ = [
    "BleachSanitizer",
    "CARD_NUMBER_LENGTHS",
    "CanonicalForm",
    "Canonicalizer",
    "DEFAULT_MAX_PASSES",
    "DEFAULT_RULES",
    "RichTextSanitizer",
    "RuleDefinition",
    "RuleRegistry",
    "TypeValidators",
    "ValidationEngine",
    "canonicalize",
    "luhn_valid",
]
