"""Shared fixtures for the inputguard reference-vector suite."""
from __future__ import annotations

import pytest

from inputguard import InputGuard
from inputguard.validation import TypeValidators, ValidationEngine


@pytest.fixture(scope="session")
def guard() -> InputGuard:
    return InputGuard.default()


@pytest.fixture(scope="session")
def engine(guard: InputGuard) -> ValidationEngine:
    return guard.engine


@pytest.fixture(scope="session")
def validators(guard: InputGuard) -> TypeValidators:
    return guard.validators
