"""Periodic supervisory sweep over the task registry."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from taskflow_service.exceptions import SettlementError
from taskflow_service.logging import get_logger
from taskflow_service.models import TaskStatus
from taskflow_service.services.event_broadcaster import (
    MONITOR_AWAITING_PAYMENT,
    MONITOR_STALE_CLAIM,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskflow_service.clients.settlement_client import SettlementClient
    from taskflow_service.services.event_broadcaster import EventBroadcaster
    from taskflow_service.services.task_registry import TaskRegistry

# Statuses in which the requester or the payout step owes the worker
_AWAITING_PAYMENT_STATUSES = frozenset({TaskStatus.RESULT_SUBMITTED, TaskStatus.CONFIRMED})


@dataclass(frozen=True)
class Anomaly:
    """A task flagged by a sweep."""

    kind: str
    task_id: str
    status: TaskStatus
    age_seconds: float


class TaskMonitor:
    """
    Flags abandoned claims and tasks stuck before payout.

    A sweep only reads the registry and publishes notifications; it never
    changes a task. Ages are measured from ``updated_at``, which is the time
    the task entered its current status.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        broadcaster: EventBroadcaster,
        stale_claim_seconds: int,
        awaiting_payment_seconds: int,
        interval_seconds: float,
        settlement_client: SettlementClient | None = None,
        payer_identity: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._stale_claim_seconds = stale_claim_seconds
        self._awaiting_payment_seconds = awaiting_payment_seconds
        self._interval_seconds = interval_seconds
        self._settlement_client = settlement_client
        self._payer_identity = payer_identity
        self._clock = clock if clock is not None else (lambda: datetime.now(UTC))
        self._task: asyncio.Task[None] | None = None
        self._logger = get_logger(__name__)
        self.sweeps_completed = 0

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def find_anomalies(self) -> list[Anomaly]:
        """Evaluate every task against the staleness thresholds."""
        now = self._clock()
        anomalies: list[Anomaly] = []
        for task in self._registry.list():
            age = (now - task.updated_at).total_seconds()
            if task.status is TaskStatus.CLAIMED and age > self._stale_claim_seconds:
                anomalies.append(Anomaly(MONITOR_STALE_CLAIM, task.id, task.status, age))
            elif (
                task.status in _AWAITING_PAYMENT_STATUSES
                and age > self._awaiting_payment_seconds
            ):
                anomalies.append(Anomaly(MONITOR_AWAITING_PAYMENT, task.id, task.status, age))
        return anomalies

    async def sweep(self) -> list[Anomaly]:
        """Run one sweep: publish anomalies, log a status summary and the payer balance."""
        anomalies = self.find_anomalies()
        for anomaly in anomalies:
            self._logger.warning(
                "Task flagged by monitor",
                extra={
                    "kind": anomaly.kind,
                    "task_id": anomaly.task_id,
                    "status": anomaly.status.value,
                    "age_seconds": round(anomaly.age_seconds, 3),
                },
            )
            self._broadcaster.publish(
                anomaly.kind,
                {"task_id": anomaly.task_id, "age_seconds": round(anomaly.age_seconds, 3)},
            )

        self._logger.info(
            "Monitor sweep complete",
            extra={
                "tasks_by_status": self._registry.count_by_status(),
                "total_tasks": len(self._registry),
                "anomalies": len(anomalies),
            },
        )
        await self._log_payer_balance()
        self.sweeps_completed += 1
        return anomalies

    async def _log_payer_balance(self) -> None:
        if self._settlement_client is None or self._payer_identity is None:
            return
        try:
            balance = await self._settlement_client.get_balance(self._payer_identity)
        except SettlementError as exc:
            self._logger.warning(
                "Could not fetch payer balance",
                extra={"payer_identity": self._payer_identity, "error": exc.message},
            )
            return
        self._logger.info(
            "Payer balance",
            extra={"payer_identity": self._payer_identity, "balance": str(balance)},
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        """Whether the recurring sweep is scheduled."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the recurring sweep on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="task-monitor")

    async def stop(self) -> None:
        """Cancel the recurring sweep and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        self._logger.info("Task monitor started", extra={"interval_seconds": self._interval_seconds})
        while True:
            try:
                await self.sweep()
            except Exception:
                self._logger.exception("Monitor sweep failed")
            await asyncio.sleep(self._interval_seconds)
