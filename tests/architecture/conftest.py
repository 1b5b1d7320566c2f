"""Architecture test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from pytestarch import EvaluableArchitecture, LayeredArchitecture, get_evaluable_architecture

# tests/architecture/conftest.py -> tests/ -> project root
_TESTS_DIR = Path(__file__).resolve().parent.parent
_PROJECT_ROOT = _TESTS_DIR.parent
_PACKAGE_DIR = _PROJECT_ROOT / "src" / "taskflow_service"
_REPORTS_DIR = _PROJECT_ROOT / "reports" / "architecture"


@pytest.fixture(scope="session")
def evaluable() -> EvaluableArchitecture:
    """Build the evaluable architecture graph for taskflow_service.

    Uses the package as both root and module path so module names are
    clean (e.g. 'taskflow_service.routers.tasks').
    """
    return get_evaluable_architecture(str(_PACKAGE_DIR), str(_PACKAGE_DIR))


@pytest.fixture(scope="session")
def layered_arch() -> LayeredArchitecture:
    """Define the service's layered architecture.

    Layers (top to bottom):
        routers   - HTTP endpoint handlers (thin wrappers)
        core      - App state, lifespan, middleware, exception handlers
        services  - Task lifecycle logic (no FastAPI imports)
        clients   - Settlement network access
    """
    return (
        LayeredArchitecture()
        .layer("routers")
        .containing_modules(["taskflow_service.routers"])
        .layer("core")
        .containing_modules(["taskflow_service.core"])
        .layer("services")
        .containing_modules(["taskflow_service.services"])
        .layer("clients")
        .containing_modules(["taskflow_service.clients"])
    )


@pytest.fixture(scope="session")
def reports_dir() -> Path:
    """Ensure the architecture reports directory exists and return its path."""
    _REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    return _REPORTS_DIR
