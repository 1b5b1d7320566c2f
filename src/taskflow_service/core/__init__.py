"""Core infrastructure components."""

from taskflow_service.core.state import AppState, get_app_state, init_app_state
from taskflow_service.exceptions import ServiceError

__all__ = ["AppState", "ServiceError", "get_app_state", "init_app_state"]
