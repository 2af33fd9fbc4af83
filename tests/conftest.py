"""
Shared test fixtures for the router_telemetry test suite.
"""

import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests/", 1)[0])

from router_telemetry.infrastructure.parsers.topology_parser import TopologyParser
from router_telemetry.infrastructure.repositories.memory_repository import MemoryTelemetryStorage

from fakes import TOPOLOGY_OUTPUT, FakeChannel, healthy_router


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def channel():
    """Connected fake channel answering every diagnostic script."""
    return healthy_router()


@pytest.fixture
def offline_channel():
    return FakeChannel(active=False)


@pytest.fixture
def storage():
    return MemoryTelemetryStorage()


@pytest.fixture
def snapshot():
    """TopologySnapshot parsed from the reference topology output."""
    return TopologyParser().parse(TOPOLOGY_OUTPUT)
