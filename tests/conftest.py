"""Shared fixtures for Simtricks tests."""

import pytest
from fakes import FakeClock

from simtricks.core.config import MatrixConfiguration, SandboxPolicy
from simtricks.core.ipc import pipeline_channels


@pytest.fixture
def config() -> MatrixConfiguration:
    return MatrixConfiguration(width=2, height=2, target_rate=10.0)


@pytest.fixture
def policy() -> SandboxPolicy:
    return SandboxPolicy()


@pytest.fixture
def channels():
    return pipeline_channels()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
