"""Task entity and lifecycle states."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """Lifecycle states, in their only legal order."""

    OPEN = "open"
    CLAIMED = "claimed"
    RESULT_SUBMITTED = "result_submitted"
    CONFIRMED = "confirmed"
    PAID = "paid"


# States in which a worker holds the claim
WORKER_ASSIGNED_STATUSES = frozenset(
    {
        TaskStatus.CLAIMED,
        TaskStatus.RESULT_SUBMITTED,
        TaskStatus.CONFIRMED,
        TaskStatus.PAID,
    }
)


def format_timestamp(value: datetime) -> str:
    """Render a UTC datetime as ISO 8601 with Z suffix."""
    return value.isoformat(timespec="microseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Task:
    """
    Immutable snapshot of a task.

    The registry replaces the stored snapshot on every transition, so a
    snapshot handed to a caller never changes underneath them.
    """

    id: str
    title: str
    description: str
    reward: Decimal
    requester_address: str
    status: TaskStatus
    created_at: datetime
    updated_at: datetime
    worker_address: str | None = None
    result: str | None = None
    escrow_reference: str | None = None
    escrow_verified: bool = False
    payout_reference: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation used by the API and notifications."""
        return {
            "task_id": self.id,
            "title": self.title,
            "description": self.description,
            "reward": str(self.reward),
            "requester": self.requester_address,
            "worker": self.worker_address,
            "status": self.status.value,
            "result": self.result,
            "escrow_reference": self.escrow_reference,
            "escrow_verified": self.escrow_verified,
            "payout_reference": self.payout_reference,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }
