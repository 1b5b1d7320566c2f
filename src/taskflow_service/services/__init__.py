"""Service layer components."""

from taskflow_service.services.event_broadcaster import Event, EventBroadcaster, EventStream
from taskflow_service.services.lifecycle_coordinator import (
    LifecycleCoordinator,
    RequesterCredentials,
)
from taskflow_service.services.task_monitor import Anomaly, TaskMonitor
from taskflow_service.services.task_registry import TaskRegistry

__all__ = [
    "Anomaly",
    "Event",
    "EventBroadcaster",
    "EventStream",
    "LifecycleCoordinator",
    "RequesterCredentials",
    "TaskMonitor",
    "TaskRegistry",
]
