"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from taskflow_service.core.state import get_app_state
from taskflow_service.exceptions import SettlementError
from taskflow_service.logging import get_logger
from taskflow_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return statistics."""
    state = get_app_state()
    total_tasks = 0
    tasks_by_status: dict[str, int] = {}
    if state.registry is not None:
        total_tasks = len(state.registry)
        tasks_by_status = state.registry.count_by_status()

    # null when the ledger cannot be reached; health itself stays ok
    payer_balance: str | None = None
    if state.coordinator is not None and state.payer_identity is not None:
        try:
            payer_balance = str(await state.coordinator.get_balance(state.payer_identity))
        except SettlementError as exc:
            get_logger(__name__).warning(
                "Payer balance unavailable for health check",
                extra={"error_code": exc.error, "error": exc.message},
            )

    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        payer_identity=state.payer_identity,
        payer_balance=payer_balance,
        total_tasks=total_tasks,
        tasks_by_status=tasks_by_status,
    )
