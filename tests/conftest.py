"""Shared fixtures for the Threadly test suite."""

import copy
from typing import Any

import pytest

from threadly.core.config import Settings
from tests.helpers.fakes import VALID_SAMPLE, FakeClock, make_settings


@pytest.fixture
def valid_sample() -> dict[str, Any]:
    return copy.deepcopy(VALID_SAMPLE)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
