"""Unit tests for application state management."""

from __future__ import annotations

import pytest

from taskflow_service.core.state import AppState, get_app_state, init_app_state, reset_app_state


@pytest.mark.unit
def test_get_before_init_fails() -> None:
    """Accessing state before startup is an error."""
    with pytest.raises(RuntimeError, match="not initialized"):
        get_app_state()


@pytest.mark.unit
def test_init_then_reset() -> None:
    """init stores a fresh state; reset forgets it."""
    state = init_app_state()

    assert get_app_state() is state
    assert state.uptime_seconds >= 0
    assert state.started_at.endswith("Z")

    reset_app_state()
    with pytest.raises(RuntimeError):
        get_app_state()


@pytest.mark.unit
@pytest.mark.parametrize(
    "accessor",
    ["require_coordinator", "require_registry", "require_broadcaster"],
)
def test_require_uninitialized_component(accessor: str) -> None:
    """Components missing from the state raise instead of returning None."""
    with pytest.raises(RuntimeError, match="not initialized"):
        getattr(AppState(), accessor)()
