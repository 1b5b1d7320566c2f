"""API routers."""

from taskflow_service.routers import balances, events, health, tasks

__all__ = ["balances", "events", "health", "tasks"]
