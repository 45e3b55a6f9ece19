"""Rule catalog and registry.

The registry maps a semantic type name (``"Email"``, ``"FileName"``, ...)
to a compiled :class:`~inputguard.core.types.Rule`.  It is built once at
start-up, holds only compiled patterns and is read-only afterwards, so a
single instance can be shared by every thread.

Patterns are written for ``fullmatch`` and avoid nested quantifiers so
matching stays linear in the (already bounded) input length.

A catalog can be extended from a TOML file::

    [rules.ZipCode]
    pattern = '[0-9]{5}(-[0-9]{4})?'
    max_length = 10

    [rules.FileName]          # overrides the built-in entry
    pattern = '[a-z0-9_.-]+'
    max_length = 64
    tripwire = '[/\\\\\\x00]'
"""
from __future__ import annotations

import re
import tomllib
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from inputguard.core.errors import InvalidRuleDefinition, UnknownRule
from inputguard.core.types import Rule

# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


class RuleDefinition(BaseModel):
    """Uncompiled catalog entry, as written in code or loaded from TOML."""

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    pattern: str
    min_length: int = Field(default=0, ge=0)
    max_length: int = Field(default=4096, ge=1)
    tripwire: str | None = None
    description: str = ""

    def compile(self, name: str) -> Rule:
        """Compile into a :class:`Rule`.

        Raises :class:`InvalidRuleDefinition` on a bad pattern or bounds.
        """
        try:
            pattern = re.compile(self.pattern)
            tripwire = re.compile(self.tripwire) if self.tripwire else None
        except re.error as exc:
            raise InvalidRuleDefinition(
                f"Rule {name!r}: invalid regular expression: {exc}",
                details={"rule": name},
            ) from exc
        return Rule(
            name=name,
            pattern=pattern,
            min_length=self.min_length,
            max_length=self.max_length,
            tripwire=tripwire,
        )


# Shell metacharacters and parent-directory segments.  Neither can appear
# in a legitimate command parameter.
_COMMAND_TRIPWIRE = r"[;&|`$<>(){}\\\r\n\x00]|(?:^|/)\.\.(?:/|$)"

DEFAULT_RULES: Mapping[str, RuleDefinition] = MappingProxyType({
    "SafeString": RuleDefinition(
        pattern=r"[\w .-]*",
        max_length=1024,
        description="Letters, digits, space, dot, dash, underscore.",
    ),
    "Email": RuleDefinition(
        pattern=r"[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,24}",
        min_length=6,
        max_length=254,
    ),
    "IPAddress": RuleDefinition(
        pattern=(
            r"(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
            r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
        ),
        min_length=7,
        max_length=15,
    ),
    "URL": RuleDefinition(
        pattern=(
            r"(?:https?|ftp)://"
            r"[0-9A-Za-z](?:[-0-9A-Za-z.]*[0-9A-Za-z])?"
            r"(?::[0-9]{1,5})?"
            r"(?:/[-A-Za-z0-9._~!$&'()*+,;=:@%/?#]*)?"
        ),
        max_length=2048,
    ),
    "SSN": RuleDefinition(
        pattern=(
            r"(?!000)(?:[0-6][0-9]{2}|7(?:[0-6][0-9]|7[012]))"
            r"([ -]?)(?!00)[0-9]{2}\1(?!0000)[0-9]{4}"
        ),
        min_length=9,
        max_length=11,
    ),
    "CreditCard": RuleDefinition(
        pattern=r"[0-9 ]+",
        min_length=13,
        max_length=32,
        description="Digits and spaces; checksum is verified separately.",
    ),
    "AccountName": RuleDefinition(
        pattern=r"[A-Za-z0-9]+",
        min_length=3,
        max_length=20,
    ),
    "RoleName": RuleDefinition(pattern=r"[a-z]+", min_length=1, max_length=20),
    "HTTPParameterName": RuleDefinition(
        pattern=r"[A-Za-z0-9_]+",
        min_length=1,
        max_length=32,
    ),
    "HTTPParameterValue": RuleDefinition(
        pattern=r"[A-Za-z0-9.\-/+=_ ]*",
        max_length=2000,
    ),
    "SystemCommandParameter": RuleDefinition(
        pattern=r"[A-Za-z0-9/-]+",
        min_length=1,
        max_length=255,
        tripwire=_COMMAND_TRIPWIRE,
        description="Alphanumerics, dash and forward slash only.",
    ),
    "FileName": RuleDefinition(
        pattern=r"[A-Za-z0-9._\- ]+",
        min_length=1,
        max_length=255,
        tripwire=r"[/\\\x00]|^\.\.?$",
        description="A bare file name; separators indicate traversal.",
    ),
    "DirectoryPath": RuleDefinition(
        pattern=r"(?:[A-Za-z]:)?[\\/A-Za-z0-9._\- ]*",
        min_length=1,
        max_length=4096,
        tripwire=r"(?:^|[\\/])\.\.(?:[\\/]|$)|\x00",
    ),
    "PrintableText": RuleDefinition(
        pattern=r"[\x21-\x7e]*",
        max_length=4096,
        description="Printable ASCII excluding space.",
    ),
    "Number": RuleDefinition(
        pattern=r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?",
        min_length=1,
        max_length=64,
    ),
    "Integer": RuleDefinition(pattern=r"[+-]?[0-9]+", min_length=1, max_length=64),
    "Date": RuleDefinition(pattern=r"[\w ,./:-]+", min_length=1, max_length=64),
})


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class RuleRegistry:
    """Immutable name -> :class:`Rule` catalog.

    Usage::

        registry = RuleRegistry.default()
        rule = registry.lookup("Email")

    An unknown name raises :class:`UnknownRule`: asking for a rule that
    does not exist is a programming error, never an input failure.
    """

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: Mapping[str, Rule] = MappingProxyType(
            {rule.name: rule for rule in rules}
        )

    # -- construction -------------------------------------------------------

    @classmethod
    def from_definitions(
        cls,
        definitions: Mapping[str, RuleDefinition | Mapping[str, Any]],
    ) -> RuleRegistry:
        """Compile a mapping of definitions (models or plain dicts)."""
        rules: list[Rule] = []
        for name, definition in definitions.items():
            if not isinstance(definition, RuleDefinition):
                try:
                    definition = RuleDefinition.model_validate(definition)
                except PydanticValidationError as exc:
                    raise InvalidRuleDefinition(
                        f"Rule {name!r}: {exc.error_count()} invalid field(s)",
                        details={"rule": name, "errors": exc.errors()},
                    ) from exc
            rules.append(definition.compile(name))
        return cls(rules)

    @classmethod
    def default(cls) -> RuleRegistry:
        """Registry holding the built-in catalog."""
        return cls.from_definitions(DEFAULT_RULES)

    @classmethod
    def from_toml(
        cls,
        path: str | Path,
        *,
        include_defaults: bool = True,
    ) -> RuleRegistry:
        """Load ``[rules.<Name>]`` tables from *path*.

        Entries override built-in rules of the same name when
        *include_defaults* is true.
        """
        with open(path, "rb") as fh:
            try:
                document = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise InvalidRuleDefinition(
                    f"Rule catalog {str(path)!r} is not valid TOML: {exc}",
                ) from exc

        tables = document.get("rules", {})
        if not isinstance(tables, dict):
            raise InvalidRuleDefinition(
                f"Rule catalog {str(path)!r}: 'rules' must be a table",
            )

        merged: dict[str, RuleDefinition | Mapping[str, Any]] = (
            dict(DEFAULT_RULES) if include_defaults else {}
        )
        merged.update(tables)
        return cls.from_definitions(merged)

    # -- lookup -------------------------------------------------------------

    def lookup(self, name: str) -> Rule:
        """Return the rule registered under *name*.

        Raises
        ------
        UnknownRule
            If *name* is not in the catalog.
        """
        try:
            return self._rules[name]
        except KeyError:
            raise UnknownRule(
                f"No validation rule named {name!r}",
                details={"rule": name},
            ) from None

    def names(self) -> list[str]:
        return sorted(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleRegistry({self.names()!r})"
