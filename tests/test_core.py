"""Tests for inputguard core -- errors, types, configuration and logging.

1. **Error hierarchy** -- codes, categories, HTTP statuses, ``to_dict``
   serialisation, generic executor messages, ``error_from_code``.
2. **Types** -- Rule bounds, per-request length tightening, outcome
   union behaviour (``ok``, ``unwrap``, ``is_valid``), ExecutionRequest
   validation.
3. **Configuration** -- ValidationConfig defaults and strictness.
4. **Logging** -- control-character neutralisation, ``configure_logging``.
"""
from __future__ import annotations

import dataclasses
import logging
import re

import pytest
from pydantic import ValidationError as PydanticValidationError

from inputguard.core.config import DEFAULT_DATE_FORMAT, ValidationConfig
from inputguard.core.errors import (
    _CODE_MAP,
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
from inputguard.core.logging import SafeFormatter, configure_logging, neutralize
from inputguard.core.types import (
    Accepted,
    ExecutionRequest,
    IntrusionSuspected,
    Rejected,
    Rule,
    ValidationRequest,
    is_valid,
)

# ===================================================================
# Error hierarchy
# ===================================================================


class TestErrorCategories:
    """Every concrete error belongs to exactly one category."""

    @pytest.mark.parametrize(
        ("cls", "category"),
        [
            (ValidationRejected, ValidationError),
            (LineTooLong, ValidationError),
            (IntrusionDetected, IntrusionError),
            (UnknownRule, ConfigurationError),
            (InvalidRuleDefinition, ConfigurationError),
            (ReadLimitInvalid, ConfigurationError),
            (ExecutablePathInvalid, ExecutorFailure),
            (ArgumentRejected, ExecutorFailure),
            (WorkingDirectoryMissing, ExecutorFailure),
            (SpawnFailure, ExecutorFailure),
            (ExecutionTimeout, ExecutorFailure),
            (OutputLimitExceeded, ExecutorFailure),
            (EnvironmentInvalid, ExecutorFailure),
        ],
    )
    def test_category(self, cls: type[InputGuardError], category: type) -> None:
        assert issubclass(cls, category)
        assert issubclass(cls, InputGuardError)

    def test_codes_are_unique(self) -> None:
        codes = [cls.code for cls in _CODE_MAP.values()]
        assert len(codes) == len(set(codes))

    def test_code_format(self) -> None:
        for code in _CODE_MAP:
            assert re.fullmatch(r"IG-E[1-4][0-9]{2}", code)

    def test_code_prefix_matches_category(self) -> None:
        prefixes = {
            ValidationError: "IG-E1",
            IntrusionError: "IG-E2",
            ConfigurationError: "IG-E3",
            ExecutorFailure: "IG-E4",
        }
        for cls in _CODE_MAP.values():
            for category, prefix in prefixes.items():
                if issubclass(cls, category):
                    assert cls.code.startswith(prefix), cls

    def test_line_too_long_is_a_validation_rejection(self) -> None:
        assert issubclass(LineTooLong, ValidationRejected)
        assert LineTooLong.http_status == 413


class TestErrorSerialisation:
    """to_dict output and message handling."""

    def test_default_message(self) -> None:
        err = ValidationRejected()
        assert err.message == "Invalid input"
        assert str(err) == "Invalid input"

    def test_custom_message_and_details(self) -> None:
        err = UnknownRule("No rule 'Foo'", details={"rule": "Foo"})
        payload = err.to_dict()["error"]
        assert payload["code"] == "IG-E300"
        assert payload["message"] == "No rule 'Foo'"
        assert payload["detail"] == {"rule": "Foo"}
        assert payload["resolution"]

    def test_details_omitted_when_empty(self) -> None:
        payload = IntrusionDetected().to_dict()["error"]
        assert "detail" not in payload

    def test_repr(self) -> None:
        assert repr(UnknownRule("x")) == "UnknownRule(code='IG-E300', message='x')"


class TestExecutorFailure:
    """Executor failures keep their cause internal."""

    def test_message_is_generic(self) -> None:
        err = SpawnFailure("execve failed: /usr/bin/secret-tool")
        assert err.message == "Execution failure"
        assert str(err) == "Execution failure"
        assert err.cause == "execve failed: /usr/bin/secret-tool"

    def test_cause_not_serialised(self) -> None:
        err = ExecutablePathInvalid(
            "Invalid path to executable file: /tmp/../bin/sh",
            details={"path": "/tmp/../bin/sh"},
        )
        payload = err.to_dict()
        assert payload == {"error": {"code": "IG-E400", "message": "Execution failure"}}
        assert "/tmp" not in repr(payload)

    def test_repr_shows_cause(self) -> None:
        assert "cause='boom'" in repr(ExecutionTimeout("boom"))

    def test_statuses(self) -> None:
        assert ArgumentRejected.http_status == 400
        assert ExecutionTimeout.http_status == 504
        assert SpawnFailure.http_status == 502


class TestErrorFromCode:
    """error_from_code lookup."""

    def test_validation_code(self) -> None:
        err = error_from_code("IG-E100", "bad email")
        assert isinstance(err, ValidationRejected)
        assert err.message == "bad email"

    def test_default_message_when_none(self) -> None:
        err = error_from_code("IG-E300")
        assert isinstance(err, UnknownRule)
        assert err.message == "Unknown validation rule"

    def test_executor_code_uses_cause(self) -> None:
        err = error_from_code("IG-E404", "deadline passed")
        assert isinstance(err, ExecutionTimeout)
        assert err.cause == "deadline passed"
        assert err.message == "Execution failure"

    def test_unknown_code(self) -> None:
        with pytest.raises(KeyError):
            error_from_code("IG-E999")


# ===================================================================
# Types
# ===================================================================


def _rule(max_length: int = 10, min_length: int = 0) -> Rule:
    return Rule(
        name="Word",
        pattern=re.compile(r"[a-z]+"),
        min_length=min_length,
        max_length=max_length,
    )


class TestRule:
    """Rule construction and matching."""

    def test_min_greater_than_max(self) -> None:
        with pytest.raises(InvalidRuleDefinition):
            _rule(max_length=3, min_length=4)

    def test_negative_min(self) -> None:
        with pytest.raises(InvalidRuleDefinition):
            _rule(min_length=-1)

    def test_full_match_only(self) -> None:
        rule = _rule()
        assert rule.matches("abc")
        assert not rule.matches("abc1")
        assert not rule.matches("1abc")

    def test_no_tripwire(self) -> None:
        assert _rule().trips("../etc") is None

    def test_tripwire_returns_fragment(self) -> None:
        rule = Rule("Name", re.compile(r".*"), tripwire=re.compile(r"[/\\]"))
        assert rule.trips("a/b") == "/"
        assert rule.trips("ab") is None

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            _rule().max_length = 99  # type: ignore[misc]


class TestValidationRequest:
    """Per-request max_length may only tighten."""

    def test_default_uses_rule_bound(self) -> None:
        req = ValidationRequest("ctx", "abc", _rule(max_length=10))
        assert req.effective_max_length == 10

    def test_tighter_override(self) -> None:
        req = ValidationRequest("ctx", "abc", _rule(max_length=10), max_length=5)
        assert req.effective_max_length == 5

    def test_looser_override_ignored(self) -> None:
        req = ValidationRequest("ctx", "abc", _rule(max_length=10), max_length=500)
        assert req.effective_max_length == 10


class TestOutcomes:
    """Accepted / Rejected / IntrusionSuspected."""

    def test_accepted(self) -> None:
        outcome = Accepted("ctx", "value")
        assert outcome.ok
        assert outcome.unwrap() == "value"
        assert is_valid(outcome)

    def test_rejected_unwrap_raises(self) -> None:
        outcome = Rejected("email", "Value is not a valid Email", {"rule": "Email"})
        assert not outcome.ok
        assert not is_valid(outcome)
        with pytest.raises(ValidationRejected) as exc_info:
            outcome.unwrap()
        assert exc_info.value.message == "email: Value is not a valid Email"
        assert exc_info.value.details["rule"] == "Email"

    def test_intrusion_unwrap_raises_generic(self) -> None:
        outcome = IntrusionSuspected("file", "Value contains a forbidden sequence '/'")
        assert not outcome.ok
        with pytest.raises(IntrusionDetected) as exc_info:
            outcome.unwrap()
        assert exc_info.value.message == "Invalid input"
        assert exc_info.value.details["reason"] == outcome.reason

    def test_details_ignored_in_equality(self) -> None:
        assert Rejected("a", "r", {"x": 1}) == Rejected("a", "r", {"x": 2})

    def test_kinds_are_distinct(self) -> None:
        assert Rejected("a", "r") != IntrusionSuspected("a", "r")


class TestExecutionRequest:
    """ExecutionRequest coercion and bounds."""

    def test_coerces_paths_and_arguments(self) -> None:
        req = ExecutionRequest(
            executable_path="/usr/bin/echo",
            arguments=["a", "b"],
            working_directory="/tmp",
        )
        assert req.executable_path == "/usr/bin/echo"
        assert req.arguments == ("a", "b")
        assert req.timeout is None
        assert req.context == "execute"

    def test_executable_path_kept_verbatim(self) -> None:
        req = ExecutionRequest(executable_path="/usr/bin/./echo", working_directory="/tmp")
        assert req.executable_path == "/usr/bin/./echo"

    def test_non_positive_timeout_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            ExecutionRequest(
                executable_path="/usr/bin/echo",
                working_directory="/tmp",
                timeout=0,
            )

    def test_frozen(self) -> None:
        req = ExecutionRequest(executable_path="/bin/true", working_directory="/")
        with pytest.raises(PydanticValidationError):
            req.timeout = 5  # type: ignore[misc]


# ===================================================================
# Configuration
# ===================================================================


class TestValidationConfig:
    """ValidationConfig defaults and validation."""

    def test_defaults(self) -> None:
        cfg = ValidationConfig()
        assert cfg.max_decode_passes == 3
        assert cfg.max_input_length == 4096
        assert cfg.max_file_size == 10 * 1024 * 1024
        assert cfg.allowed_file_extensions == []
        assert cfg.date_formats == [DEFAULT_DATE_FORMAT]
        assert cfg.max_line_length == 8192

    def test_strict_types(self) -> None:
        with pytest.raises(PydanticValidationError):
            ValidationConfig(max_decode_passes="3")  # type: ignore[arg-type]

    @pytest.mark.parametrize("passes", [0, 17])
    def test_decode_pass_bounds(self, passes: int) -> None:
        with pytest.raises(PydanticValidationError):
            ValidationConfig(max_decode_passes=passes)

    def test_date_formats_not_empty(self) -> None:
        with pytest.raises(PydanticValidationError):
            ValidationConfig(date_formats=[])

    def test_frozen(self) -> None:
        cfg = ValidationConfig()
        with pytest.raises(PydanticValidationError):
            cfg.max_input_length = 1  # type: ignore[misc]


# ===================================================================
# Logging
# ===================================================================


class TestNeutralize:
    """Control characters cannot forge log lines."""

    def test_newlines_replaced(self) -> None:
        assert neutralize("a\r\nFAKE ENTRY") == "a__FAKE ENTRY"

    def test_tab_kept(self) -> None:
        assert neutralize("a\tb") == "a\tb"

    def test_nul_and_del_replaced(self) -> None:
        assert neutralize("a\x00b\x7f") == "a_b_"


class TestSafeFormatter:
    """SafeFormatter renders a single physical line."""

    def test_message_neutralised(self) -> None:
        record = logging.LogRecord(
            "inputguard.test", logging.WARNING, __file__, 1,
            "context=%s", ("x\nINFO forged",), None,
        )
        assert SafeFormatter("%(message)s").format(record) == "context=x_INFO forged"


class TestConfigureLogging:
    """configure_logging installs exactly one handler."""

    @pytest.fixture(autouse=True)
    def _restore(self):
        logger = logging.getLogger("inputguard")
        saved_handlers, saved_level = list(logger.handlers), logger.level
        yield
        logger.handlers[:] = saved_handlers
        logger.setLevel(saved_level)

    def test_single_handler(self) -> None:
        configure_logging("DEBUG")
        logger = configure_logging("WARNING")
        assert logger.name == "inputguard"
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, SafeFormatter)
        assert logger.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        assert configure_logging("chatty").level == logging.INFO
