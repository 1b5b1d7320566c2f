"""Router test fixtures: app with lifespan and async client."""

import os

import pytest
from httpx import ASGITransport, AsyncClient

from taskflow_service.app import create_app
from taskflow_service.config import clear_settings_cache
from taskflow_service.core.lifespan import lifespan
from taskflow_service.core.state import get_app_state, reset_app_state
from taskflow_service.services.lifecycle_coordinator import LifecycleCoordinator
from tests.helpers import make_settlement_mock, render_config


@pytest.fixture
def config_overrides():
    """Keyword overrides for render_config; override in a test module if needed."""
    return {}


@pytest.fixture
async def app(tmp_path, config_overrides):
    """Create a test app backed by the simulated ledger."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(render_config(tmp_path, **config_overrides))
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        yield test_app

    reset_app_state()
    clear_settings_cache()
    os.environ.pop("CONFIG_PATH", None)


@pytest.fixture
async def client(app):
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def mock_settlement(app):
    """Swap the running coordinator onto a settlement mock (transfers succeed as tx123)."""
    state = get_app_state()
    settlement = make_settlement_mock("tx123")
    state.settlement_client = settlement
    state.coordinator = LifecycleCoordinator(
        registry=state.require_registry(),
        settlement_client=settlement,
        broadcaster=state.require_broadcaster(),
    )
    return settlement
