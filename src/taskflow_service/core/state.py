"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskflow_service.clients.settlement_client import SettlementClient
    from taskflow_service.services.event_broadcaster import EventBroadcaster
    from taskflow_service.services.lifecycle_coordinator import LifecycleCoordinator
    from taskflow_service.services.task_monitor import TaskMonitor
    from taskflow_service.services.task_registry import TaskRegistry


@dataclass
class AppState:
    """Runtime application state: the component graph built at startup."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    registry: TaskRegistry | None = None
    broadcaster: EventBroadcaster | None = None
    settlement_client: SettlementClient | None = None
    coordinator: LifecycleCoordinator | None = None
    monitor: TaskMonitor | None = None
    payer_identity: str | None = None
    stream_queue_size: int = 100

    @property
    def uptime_seconds(self) -> float:
        """Calculate uptime in seconds."""
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        """ISO format start time."""
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")

    def require_coordinator(self) -> LifecycleCoordinator:
        """Return the coordinator or fail loudly if startup did not run."""
        if self.coordinator is None:
            msg = "LifecycleCoordinator not initialized"
            raise RuntimeError(msg)
        return self.coordinator

    def require_registry(self) -> TaskRegistry:
        """Return the registry or fail loudly if startup did not run."""
        if self.registry is None:
            msg = "TaskRegistry not initialized"
            raise RuntimeError(msg)
        return self.registry

    def require_broadcaster(self) -> EventBroadcaster:
        """Return the broadcaster or fail loudly if startup did not run."""
        if self.broadcaster is None:
            msg = "EventBroadcaster not initialized"
            raise RuntimeError(msg)
        return self.broadcaster


# Holder for the state of the running app; the components themselves are
# created per app in the lifespan.
_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
