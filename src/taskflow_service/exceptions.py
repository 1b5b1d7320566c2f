"""
Service error taxonomy.

Every expected failure is a ServiceError carrying a machine-readable code,
an HTTP status and a details dict. The HTTP handlers live in core.exceptions.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """
    Error with a machine-readable code, an HTTP status and details.

    Every expected failure in the service is a ServiceError; anything else
    reaching the HTTP boundary is treated as a bug.
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, Any] = details if details is not None else {}

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a response body."""
        return {"error": self.error, "message": self.message, "details": self.details}


# ---------------------------------------------------------------------------
# Precondition errors: raised by the registry, never mutate state
# ---------------------------------------------------------------------------


class PreconditionError(ServiceError):
    """The request was invalid for the task's current state or caller."""


class InvalidStateError(PreconditionError):
    """Transition attempted from a state other than its required predecessor."""

    def __init__(self, task_id: str, current: str, required: str) -> None:
        super().__init__(
            "INVALID_STATE",
            f"Task {task_id} is '{current}', must be '{required}'",
            409,
            {"task_id": task_id, "status": current, "required_status": required},
        )


class UnauthorizedError(PreconditionError):
    """Caller address does not own the role the transition requires."""

    def __init__(self, message: str, task_id: str) -> None:
        super().__init__("UNAUTHORIZED", message, 403, {"task_id": task_id})


class SelfDealingError(PreconditionError):
    """Requester attempted to claim their own task."""

    def __init__(self, task_id: str) -> None:
        super().__init__(
            "SELF_DEALING",
            "Requester cannot claim their own task",
            400,
            {"task_id": task_id},
        )


class TaskNotFoundError(PreconditionError):
    """No task with the given id exists."""

    def __init__(self, task_id: str) -> None:
        super().__init__("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})


class InvalidRewardError(PreconditionError):
    """Reward is not a positive finite decimal."""

    def __init__(self, message: str = "Reward must be a positive decimal amount") -> None:
        super().__init__("INVALID_REWARD", message, 400, {})


class InvalidPayloadError(PreconditionError):
    """Request body is malformed or missing required fields."""

    def __init__(self, message: str) -> None:
        super().__init__("INVALID_PAYLOAD", message, 400, {})


class PaymentInProgressError(PreconditionError):
    """A settlement for the task is already in flight."""

    def __init__(self, task_id: str) -> None:
        super().__init__(
            "PAYMENT_IN_PROGRESS",
            "A payment for this task is already in progress",
            409,
            {"task_id": task_id},
        )


# ---------------------------------------------------------------------------
# Settlement errors: raised by the settlement client, task state untouched
# ---------------------------------------------------------------------------


class SettlementError(ServiceError):
    """The ledger transfer or query could not complete."""


class TransferRevertedError(SettlementError):
    """The transfer was rejected or reverted by the ledger."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("TRANSFER_REVERTED", message, 502, details)


class NetworkError(SettlementError):
    """The settlement network could not be reached or answered unexpectedly."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("SETTLEMENT_UNAVAILABLE", message, 502, details)


class PaymentFailedError(SettlementError):
    """
    Confirmation succeeded but the payout transfer did not.

    ``details["task"]`` carries the still-confirmed task so the caller can
    retry payment without redoing confirmation.
    """

    def __init__(self, task_id: str, reason: SettlementError, task: dict[str, Any]) -> None:
        super().__init__(
            "PAYMENT_FAILED",
            f"Task confirmed but payment failed: {reason.message}",
            502,
            {"task_id": task_id, "reason": reason.error, "task": task},
        )
        self.reason = reason


# ---------------------------------------------------------------------------
# Invariant violations: bugs, never caught and ignored
# ---------------------------------------------------------------------------


class InvariantViolationError(RuntimeError):
    """A task was observed in a state its invariants forbid."""


