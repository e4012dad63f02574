"""Shared test fixtures."""

import pytest

from tests.helpers import FakeEngine
from torrentdesk.session.coordinator import SessionCoordinator


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def coordinator(engine: FakeEngine) -> SessionCoordinator:
    return SessionCoordinator(engine, tick_interval=2.0)
