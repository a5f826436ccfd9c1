"""Pytest configuration and shared fixtures for talkman-relay tests."""

import tempfile
from pathlib import Path

import pytest

from talkman_relay.devices.registry import DeviceRegistry
from talkman_relay.push.dispatcher import NotificationDispatcher

from tests.helpers import FakeGateway, commit, push_payload


@pytest.fixture
def fake_gateway():
    """Push gateway that delivers everything."""
    return FakeGateway()


@pytest.fixture
def registry():
    """Empty device registry."""
    return DeviceRegistry()


@pytest.fixture
def dispatcher(fake_gateway, registry):
    """Dispatcher wired to the fake gateway and registry."""
    return NotificationDispatcher(fake_gateway, registry=registry, timeout=0.5)


@pytest.fixture
def temp_directory():
    """Create a temporary directory for file operations."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def markdown_push_payload():
    """Push payload with one added README.md."""
    return push_payload(commit(added=['README.md']))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        if "slow" in item.name or "timeout" in item.name:
            item.add_marker(pytest.mark.slow)
