"""Tests for inputguard validation -- canonicalizer, rule registry, engine.

1. **Canonicalizer** -- each decoder, layered and mixed encodings, pass
   limit and convergence, invisible characters, byte input.
2. **RuleRegistry** -- built-in catalog, lookup failures, definitions
   from dicts and TOML, invalid definitions.
3. **ValidationEngine** -- pipeline order, null/empty policy, length
   bounds on the canonical value, tripwires, logging.
"""
from __future__ import annotations

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from inputguard.core.config import ValidationConfig
from inputguard.core.errors import ConfigurationError, InvalidRuleDefinition, UnknownRule
from inputguard.core.types import Accepted, IntrusionSuspected, Rejected, ValidationRequest
from inputguard.validation.canonicalizer import (
    DEFAULT_MAX_PASSES,
    CanonicalForm,
    Canonicalizer,
    canonicalize,
)
from inputguard.validation.engine import ValidationEngine
from inputguard.validation.rules import DEFAULT_RULES, RuleDefinition, RuleRegistry

ZWSP = chr(0x200B)
RLO = chr(0x202E)
FULLWIDTH_A = chr(0xFF21)


@pytest.fixture()
def canonicalizer() -> Canonicalizer:
    return Canonicalizer()


@pytest.fixture()
def registry() -> RuleRegistry:
    return RuleRegistry.default()


@pytest.fixture()
def engine(registry: RuleRegistry) -> ValidationEngine:
    return ValidationEngine(registry)


# ===================================================================
# Canonicalizer
# ===================================================================


class TestCanonicalizerDecoders:
    """Single-layer decoding."""

    def test_plain_text_unchanged(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("hello world")
        assert form == CanonicalForm("hello world", 0, True)

    def test_percent(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("%41%42")
        assert form.value == "AB"
        assert form.passes == 1
        assert form.codecs == frozenset({"percent"})

    def test_html_named_entity(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize("&lt;b&gt;").value == "<b>"

    def test_html_numeric_entities(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize("&#60;&#x3c;&#X3C;").value == "<<<"

    def test_backslash_hex_escape(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("\\x2e\\x2e/etc")
        assert form.value == "../etc"
        assert "escape" in form.codecs

    def test_backslash_unicode_escape(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize("\\" + "u003cscript").value == "<script"

    def test_fullwidth_folded(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize(FULLWIDTH_A + "BC")
        assert form.value == "ABC"
        assert form.codecs == frozenset({"unicode"})

    def test_invisible_characters_removed(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize("ad" + ZWSP + "min" + RLO).value == "admin"

    def test_bytes_decoded_as_utf8(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize(b"caf\xc3\xa9").value == "caf" + chr(0xE9)

    def test_invalid_utf8_replaced(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize(b"a\xffb").value == "a" + chr(0xFFFD) + "b"

    def test_lone_percent_is_literal(self, canonicalizer: Canonicalizer) -> None:
        assert canonicalizer.canonicalize("100%").value == "100%"


class TestCanonicalizerLayers:
    """Layered and mixed encodings, and the pass limit."""

    def test_double_percent(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("%2541")
        assert form.value == "A"
        assert form.passes == 2
        assert form.converged

    def test_mixed_encoding_reported(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("%26lt%3B")
        assert form.value == "<"
        assert form.codecs == frozenset({"percent", "html"})
        assert form.mixed

    def test_unicode_alone_is_not_mixed(self, canonicalizer: Canonicalizer) -> None:
        assert not canonicalizer.canonicalize(FULLWIDTH_A + "%41").mixed

    def test_at_pass_limit_converges(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("%252541")
        assert form.passes == DEFAULT_MAX_PASSES
        assert form.converged
        assert form.value == "A"

    def test_beyond_pass_limit_does_not_converge(self, canonicalizer: Canonicalizer) -> None:
        form = canonicalizer.canonicalize("%25252541")
        assert not form.converged

    def test_higher_limit_allows_more_layers(self) -> None:
        assert Canonicalizer(max_passes=5).canonicalize("%25252541").converged

    def test_invalid_limit(self) -> None:
        with pytest.raises(ValueError):
            Canonicalizer(max_passes=0)

    def test_module_function(self) -> None:
        assert canonicalize("%3Cscript%3E") == "<script>"

    @given(st.text(max_size=64))
    def test_converged_value_is_fixed_point(self, text: str) -> None:
        canon = Canonicalizer()
        form = canon.canonicalize(text)
        if form.converged:
            again = canon.canonicalize(form.value)
            assert again.value == form.value
            assert again.passes == 0

    @given(st.binary(max_size=64))
    def test_never_raises_on_bytes(self, data: bytes) -> None:
        assert isinstance(Canonicalizer().canonicalize(data).value, str)


# ===================================================================
# RuleRegistry
# ===================================================================


class TestDefaultCatalog:
    """Built-in rules."""

    @pytest.mark.parametrize(
        "name",
        [
            "Email", "IPAddress", "URL", "SSN", "SystemCommandParameter",
            "FileName", "PrintableText", "CreditCard", "Number", "Integer",
            "Date", "DirectoryPath",
        ],
    )
    def test_required_rules_present(self, registry: RuleRegistry, name: str) -> None:
        assert name in registry
        assert registry.lookup(name).name == name

    def test_every_definition_compiles(self) -> None:
        assert len(RuleRegistry.default()) == len(DEFAULT_RULES)

    def test_default_catalog_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_RULES["Evil"] = RuleDefinition(pattern=".*")  # type: ignore[index]

    def test_names_sorted(self, registry: RuleRegistry) -> None:
        assert registry.names() == sorted(registry.names())

    def test_iteration_yields_rules(self, registry: RuleRegistry) -> None:
        assert {rule.name for rule in registry} == set(registry.names())


class TestLookup:
    """Unknown names are configuration errors."""

    def test_unknown_rule(self, registry: RuleRegistry) -> None:
        with pytest.raises(UnknownRule) as exc_info:
            registry.lookup("Nope")
        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.details == {"rule": "Nope"}

    def test_contains_non_string(self, registry: RuleRegistry) -> None:
        assert 42 not in registry


class TestDefinitions:
    """Compiling definitions from models and dicts."""

    def test_from_dict(self) -> None:
        reg = RuleRegistry.from_definitions(
            {"Zip": {"pattern": "[0-9]{5}", "min_length": 5, "max_length": 5}},
        )
        rule = reg.lookup("Zip")
        assert rule.matches("12345")
        assert (rule.min_length, rule.max_length) == (5, 5)

    def test_bad_regex(self) -> None:
        with pytest.raises(InvalidRuleDefinition):
            RuleRegistry.from_definitions({"Bad": {"pattern": "[a-"}})

    def test_bad_tripwire_regex(self) -> None:
        with pytest.raises(InvalidRuleDefinition):
            RuleRegistry.from_definitions({"Bad": {"pattern": ".*", "tripwire": "("}})

    def test_min_greater_than_max(self) -> None:
        with pytest.raises(InvalidRuleDefinition):
            RuleRegistry.from_definitions(
                {"Bad": {"pattern": ".*", "min_length": 9, "max_length": 3}},
            )

    def test_unknown_field(self) -> None:
        with pytest.raises(InvalidRuleDefinition) as exc_info:
            RuleRegistry.from_definitions({"Bad": {"pattern": ".*", "flags": "i"}})
        assert exc_info.value.details["rule"] == "Bad"

    def test_wrong_type(self) -> None:
        with pytest.raises(InvalidRuleDefinition):
            RuleRegistry.from_definitions({"Bad": {"pattern": ".*", "max_length": "10"}})


class TestTomlCatalog:
    """Loading rules from TOML."""

    def test_extends_defaults(self, tmp_path) -> None:
        path = tmp_path / "rules.toml"
        path.write_text(
            "[rules.ZipCode]\n"
            "pattern = '[0-9]{5}(-[0-9]{4})?'\n"
            "max_length = 10\n"
        )
        reg = RuleRegistry.from_toml(path)
        assert "ZipCode" in reg
        assert "Email" in reg
        assert reg.lookup("ZipCode").matches("12345-6789")

    def test_overrides_builtin(self, tmp_path) -> None:
        path = tmp_path / "rules.toml"
        path.write_text("[rules.RoleName]\npattern = '[a-z_]+'\nmax_length = 8\n")
        rule = RuleRegistry.from_toml(path).lookup("RoleName")
        assert rule.matches("db_admin")
        assert rule.max_length == 8

    def test_without_defaults(self, tmp_path) -> None:
        path = tmp_path / "rules.toml"
        path.write_text("[rules.Only]\npattern = 'x'\n")
        reg = RuleRegistry.from_toml(path, include_defaults=False)
        assert reg.names() == ["Only"]

    def test_invalid_toml(self, tmp_path) -> None:
        path = tmp_path / "rules.toml"
        path.write_text("[rules.Broken\npattern = \n")
        with pytest.raises(InvalidRuleDefinition):
            RuleRegistry.from_toml(path)

    def test_rules_not_a_table(self, tmp_path) -> None:
        path = tmp_path / "rules.toml"
        path.write_text("rules = 3\n")
        with pytest.raises(InvalidRuleDefinition):
            RuleRegistry.from_toml(path)


# ===================================================================
# ValidationEngine
# ===================================================================


class TestEmptyPolicy:
    """Null / empty handling."""

    @pytest.mark.parametrize("value", [None, "", b""])
    def test_rejected_by_default(self, engine: ValidationEngine, value) -> None:
        assert isinstance(engine.validate_input("ctx", value, "Email"), Rejected)

    @pytest.mark.parametrize("value", [None, "", b""])
    def test_allowed(self, engine: ValidationEngine, value) -> None:
        outcome = engine.validate_input("ctx", value, "Email", allow_null_or_empty=True)
        assert outcome == Accepted("ctx", "")

    def test_empty_after_canonicalization(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", ZWSP, "SafeString")
        assert isinstance(outcome, Rejected)


class TestPipeline:
    """Canonicalize, tripwire, length, pattern."""

    def test_accepts_canonical_value(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "jeff%40example.com", "Email")
        assert outcome == Accepted("ctx", "jeff@example.com")

    def test_encoded_attack_rejected(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "%3Cscript%3E", "SafeString")
        assert isinstance(outcome, Rejected)

    def test_non_convergent_is_intrusion(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "%25252541", "SafeString")
        assert isinstance(outcome, IntrusionSuspected)
        assert "percent" in outcome.details["codecs"]

    def test_length_checked_after_decoding(self, registry: RuleRegistry) -> None:
        engine = ValidationEngine(registry)
        # 3 encoded bytes per character, 4 characters decoded.
        outcome = engine.validate_input("ctx", "%61%61%61%61", "SafeString", max_length=4)
        assert outcome == Accepted("ctx", "aaaa")

    def test_max_length(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "a" * 6, "SafeString", max_length=5)
        assert isinstance(outcome, Rejected)
        assert outcome.details["length"] == 6

    def test_min_length(self, engine: ValidationEngine) -> None:
        assert isinstance(engine.validate_input("ctx", "ab", "AccountName"), Rejected)

    def test_config_ceiling(self, registry: RuleRegistry) -> None:
        engine = ValidationEngine(registry, ValidationConfig(max_input_length=8))
        assert isinstance(engine.validate_input("ctx", "a" * 9, "SafeString"), Rejected)

    def test_partial_match_rejected(self, engine: ValidationEngine) -> None:
        assert isinstance(engine.validate_input("ctx", "192.168.1.1x", "IPAddress"), Rejected)

    def test_tripwire_before_length(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "a/" * 300, "FileName")
        assert isinstance(outcome, IntrusionSuspected)

    def test_encoded_separator_trips(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "..%2Fetc%2Fpasswd", "FileName")
        assert isinstance(outcome, IntrusionSuspected)

    def test_command_metacharacter_trips(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "foo;rm", "SystemCommandParameter")
        assert isinstance(outcome, IntrusionSuspected)

    def test_command_parameter_allowed(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "-la/tmp", "SystemCommandParameter")
        assert outcome == Accepted("ctx", "-la/tmp")

    def test_validate_request_directly(self, engine: ValidationEngine, registry) -> None:
        request = ValidationRequest("ctx", "Admin1", registry.lookup("AccountName"))
        assert engine.validate(request).ok

    def test_is_valid_input(self, engine: ValidationEngine) -> None:
        assert engine.is_valid_input("ctx", "192.168.1.234", "IPAddress")
        assert not engine.is_valid_input("ctx", "10.x.1.234", "IPAddress")

    def test_unknown_rule_raises(self, engine: ValidationEngine) -> None:
        with pytest.raises(UnknownRule):
            engine.validate_input("ctx", "x", "NoSuchRule")

    def test_rule_name_in_details(self, engine: ValidationEngine) -> None:
        outcome = engine.validate_input("ctx", "nope", "Email")
        assert outcome.details["rule"] == "Email"

    @given(st.from_regex(r"[A-Za-z0-9._ -]{1,40}", fullmatch=True))
    def test_idempotent(self, value: str) -> None:
        engine = ValidationEngine(RuleRegistry.default())
        first = engine.validate_input("ctx", value, "SafeString")
        if isinstance(first, Accepted):
            assert engine.validate_input("ctx", first.value, "SafeString") == first


class TestEngineLogging:
    """Intrusions log at WARNING without the raw value."""

    def test_intrusion_logged(self, engine: ValidationEngine, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="inputguard")
        engine.validate_input("upload", "secret/passwd", "FileName")
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "context=upload" in warnings[0].getMessage()
        assert "secret/passwd" not in caplog.text

    def test_rejection_logged_at_debug(self, engine: ValidationEngine, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="inputguard")
        engine.validate_input("email", "bogus", "Email")
        assert [r.levelno for r in caplog.records] == [logging.DEBUG]
