"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from taskflow_service.clients.settlement_client import HttpSettlementClient
from taskflow_service.clients.simulated_ledger import SimulatedLedgerClient
from taskflow_service.config import get_settings
from taskflow_service.core.state import init_app_state
from taskflow_service.logging import get_logger, setup_logging
from taskflow_service.services.event_broadcaster import EventBroadcaster
from taskflow_service.services.lifecycle_coordinator import LifecycleCoordinator
from taskflow_service.services.task_monitor import TaskMonitor
from taskflow_service.services.task_registry import TaskRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from taskflow_service.clients.settlement_client import SettlementClient
    from taskflow_service.config import SettlementConfig


def build_settlement_client(config: SettlementConfig) -> SettlementClient:
    """Create the settlement client selected by configuration."""
    if config.mode == "simulated":
        return SimulatedLedgerClient(initial_balances=config.initial_balances)

    if config.base_url is None or config.transfer_path is None or config.balance_path is None:
        msg = "settlement.mode 'http' requires base_url, transfer_path and balance_path"
        raise RuntimeError(msg)
    return HttpSettlementClient(
        base_url=config.base_url,
        transfer_path=config.transfer_path,
        balance_path=config.balance_path,
        timeout_seconds=config.timeout_seconds,
        api_key=config.api_key,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    registry = TaskRegistry()
    broadcaster = EventBroadcaster(history_size=settings.events.history_size)
    settlement_client = build_settlement_client(settings.settlement)
    coordinator = LifecycleCoordinator(
        registry=registry,
        settlement_client=settlement_client,
        broadcaster=broadcaster,
    )
    monitor = TaskMonitor(
        registry=registry,
        broadcaster=broadcaster,
        stale_claim_seconds=settings.monitor.stale_claim_seconds,
        awaiting_payment_seconds=settings.monitor.awaiting_payment_seconds,
        interval_seconds=settings.monitor.interval_seconds,
        settlement_client=settlement_client,
        payer_identity=settings.settlement.payer_identity,
    )

    state.registry = registry
    state.broadcaster = broadcaster
    state.settlement_client = settlement_client
    state.coordinator = coordinator
    state.monitor = monitor
    state.payer_identity = settings.settlement.payer_identity
    state.stream_queue_size = settings.events.stream_queue_size

    if settings.monitor.enabled:
        monitor.start()

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "settlement_mode": settings.settlement.mode,
            "payer_identity": settings.settlement.payer_identity,
            "monitor_enabled": settings.monitor.enabled,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await monitor.stop()
    await settlement_client.close()
