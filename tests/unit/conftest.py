"""Unit test fixtures: auto-clear caches between tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from taskflow_service.config import clear_settings_cache
from taskflow_service.core.state import reset_app_state
from taskflow_service.services.event_broadcaster import EventBroadcaster
from taskflow_service.services.lifecycle_coordinator import (
    LifecycleCoordinator,
    RequesterCredentials,
)
from taskflow_service.services.task_registry import TaskRegistry
from tests.helpers import PAYER, REQUESTER, EventRecorder, make_settlement_mock

if TYPE_CHECKING:
    from unittest.mock import AsyncMock


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def registry() -> TaskRegistry:
    """A fresh, empty registry."""
    return TaskRegistry()


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    """A broadcaster with default history."""
    return EventBroadcaster(history_size=50)


@pytest.fixture
def recorder(broadcaster: EventBroadcaster) -> EventRecorder:
    """Listener subscribed to the broadcaster."""
    events = EventRecorder()
    broadcaster.subscribe(events)
    return events


@pytest.fixture
def settlement() -> AsyncMock:
    """Settlement client mock; transfers succeed with reference tx123."""
    return make_settlement_mock("tx123")


@pytest.fixture
def coordinator(
    registry: TaskRegistry,
    settlement: AsyncMock,
    broadcaster: EventBroadcaster,
) -> LifecycleCoordinator:
    """Coordinator wired to the registry, settlement mock and broadcaster."""
    return LifecycleCoordinator(
        registry=registry,
        settlement_client=settlement,
        broadcaster=broadcaster,
    )


@pytest.fixture
def requester_credentials() -> RequesterCredentials:
    """Credentials of the requester used throughout the tests."""
    return RequesterCredentials(address=REQUESTER, signing_identity=PAYER)
