"""In-memory task registry with atomic, precondition-checked transitions."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from threading import RLock
from typing import TYPE_CHECKING

from taskflow_service.exceptions import (
    InvalidPayloadError,
    InvalidRewardError,
    InvalidStateError,
    SelfDealingError,
    TaskNotFoundError,
    UnauthorizedError,
)
from taskflow_service.models import Task, TaskStatus

if TYPE_CHECKING:
    from collections.abc import Callable


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_reward(value: object) -> Decimal:
    """
    Parse a reward into a positive finite Decimal.

    Accepts Decimal, int, or a decimal string. Floats and bools are rejected
    so that binary rounding never reaches the ledger.
    """
    if isinstance(value, (bool, float)):
        raise InvalidRewardError("Reward must be a decimal string or integer")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation as exc:
            raise InvalidRewardError(f"Reward is not a decimal amount: {value!r}") from exc
    else:
        raise InvalidRewardError("Reward must be a decimal string or integer")

    if not amount.is_finite() or amount <= 0:
        raise InvalidRewardError()
    return amount


def same_address(left: str | None, right: str | None) -> bool:
    """Compare caller-asserted addresses, ignoring hex letter case."""
    if left is None or right is None:
        return False
    return left.casefold() == right.casefold()


def _require_text(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayloadError(f"{field_name} must be a non-empty string")
    return value


class TaskRegistry:
    """
    Authoritative collection of tasks.

    Each transition checks its preconditions and writes the new snapshot
    under one lock acquisition, so no two callers can both observe the same
    predecessor state. A failed transition leaves the stored snapshot as is.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._lock = RLock()
        # dict preserves insertion order, which is creation order
        self._tasks: dict[str, Task] = {}
        self._clock = clock if clock is not None else _utcnow

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    @staticmethod
    def _require_status(task: Task, required: TaskStatus) -> None:
        if task.status is not required:
            raise InvalidStateError(task.id, task.status.value, required.value)

    def _commit(self, task: Task, **changes: object) -> Task:
        updated = replace(task, updated_at=self._clock(), **changes)
        self._tasks[task.id] = updated
        return updated

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        description: str,
        reward: object,
        requester_address: str,
        escrow_reference: str | None = None,
    ) -> Task:
        """Create an open task. Raises InvalidRewardError for a bad reward."""
        title = _require_text(title, "title")
        requester_address = _require_text(requester_address, "requester")
        amount = parse_reward(reward)
        if not isinstance(description, str):
            raise InvalidPayloadError("description must be a string")

        with self._lock:
            now = self._clock()
            task = Task(
                id=f"t-{uuid.uuid4()}",
                title=title,
                description=description,
                reward=amount,
                requester_address=requester_address,
                status=TaskStatus.OPEN,
                created_at=now,
                updated_at=now,
                escrow_reference=escrow_reference,
            )
            self._tasks[task.id] = task
            return task

    def claim(self, task_id: str, worker_address: str) -> Task:
        """Assign a worker to an open task."""
        worker_address = _require_text(worker_address, "worker")
        with self._lock:
            task = self._require(task_id)
            self._require_status(task, TaskStatus.OPEN)
            if same_address(task.requester_address, worker_address):
                raise SelfDealingError(task_id)
            return self._commit(task, worker_address=worker_address, status=TaskStatus.CLAIMED)

    def submit_result(self, task_id: str, worker_address: str, result: str) -> Task:
        """Record the claiming worker's result."""
        if not isinstance(result, str):
            raise InvalidPayloadError("result must be a string")
        with self._lock:
            task = self._require(task_id)
            self._require_status(task, TaskStatus.CLAIMED)
            if not same_address(task.worker_address, worker_address):
                raise UnauthorizedError("Only the assigned worker can submit results", task_id)
            return self._commit(task, result=result, status=TaskStatus.RESULT_SUBMITTED)

    def confirm(self, task_id: str, requester_address: str) -> Task:
        """Requester accepts the submitted result. Settlement is not touched."""
        with self._lock:
            task = self._require(task_id)
            self._require_status(task, TaskStatus.RESULT_SUBMITTED)
            self._require_requester(task, requester_address)
            return self._commit(task, status=TaskStatus.CONFIRMED)

    def record_payout(self, task_id: str, payout_reference: str) -> Task:
        """Attach the confirmed payout transfer and close the task."""
        payout_reference = _require_text(payout_reference, "payout_reference")
        with self._lock:
            task = self._require(task_id)
            self._require_status(task, TaskStatus.CONFIRMED)
            return self._commit(task, payout_reference=payout_reference, status=TaskStatus.PAID)

    def mark_escrow_verified(self, task_id: str, escrow_reference: str) -> Task:
        """
        Flag the task's escrow deposit as confirmed on the ledger.

        The reference must be the one recorded at creation. ``updated_at`` is
        left alone because the lifecycle status does not change.
        """
        with self._lock:
            task = self._require(task_id)
            if task.escrow_reference is None or task.escrow_reference != escrow_reference:
                raise InvalidPayloadError("escrow_reference does not match the task")
            updated = replace(task, escrow_verified=True)
            self._tasks[task.id] = updated
            return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _require_requester(task: Task, requester_address: str) -> None:
        if not same_address(task.requester_address, requester_address):
            raise UnauthorizedError("Only the requester can confirm this task", task.id)

    def authorize_requester(self, task_id: str, requester_address: str) -> Task:
        """Return the task if the caller is its requester, else raise UnauthorizedError."""
        with self._lock:
            task = self._require(task_id)
            self._require_requester(task, requester_address)
            return task

    def get(self, task_id: str) -> Task:
        """Fetch a task snapshot by id."""
        with self._lock:
            return self._require(task_id)

    def list(self, status: TaskStatus | None = None) -> list[Task]:
        """List task snapshots in creation order, optionally filtered by status."""
        with self._lock:
            tasks = list(self._tasks.values())
        if status is None:
            return tasks
        return [task for task in tasks if task.status is status]

    def count_by_status(self) -> dict[str, int]:
        """Count tasks per status. Every status is present, zero included."""
        counts: dict[str, int] = dict.fromkeys((status.value for status in TaskStatus), 0)
        with self._lock:
            for task in self._tasks.values():
                counts[task.status.value] += 1
        return counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
