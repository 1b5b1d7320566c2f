"""Task lifecycle orchestration and payout settlement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from taskflow_service.exceptions import (
    InvariantViolationError,
    NetworkError,
    PaymentFailedError,
    PaymentInProgressError,
    SettlementError,
)
from taskflow_service.logging import get_logger
from taskflow_service.models import TaskStatus
from taskflow_service.services.event_broadcaster import (
    PAYMENT_FAILED,
    PAYMENT_SENT,
    TASK_ACCEPTED,
    TASK_COMPLETED,
    TASK_CONFIRMED,
    TASK_CREATED,
)
from taskflow_service.services.task_registry import same_address

if TYPE_CHECKING:
    from decimal import Decimal

    from taskflow_service.clients.settlement_client import SettlementClient, TransferReceipt
    from taskflow_service.models import Task
    from taskflow_service.services.event_broadcaster import EventBroadcaster
    from taskflow_service.services.task_registry import TaskRegistry


@dataclass(frozen=True)
class RequesterCredentials:
    """
    Who is confirming, and which ledger identity pays.

    ``address`` is matched against the task's requester. ``signing_identity``
    is the account the payout is drawn from (the escrow holder).
    """

    address: str
    signing_identity: str


class LifecycleCoordinator:
    """
    Drives tasks through their lifecycle.

    Delegates every state change to the TaskRegistry, performs the payout
    transfer the registry deliberately does not, and publishes a notification
    after each committed step.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        settlement_client: SettlementClient,
        broadcaster: EventBroadcaster,
    ) -> None:
        self._registry = registry
        self._settlement_client = settlement_client
        self._broadcaster = broadcaster
        self._payments_in_flight: set[str] = set()
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Pass-through transitions
    # ------------------------------------------------------------------

    def request_task(
        self,
        title: str,
        description: str,
        reward: object,
        requester_address: str,
        escrow_reference: str | None = None,
    ) -> Task:
        """Create a task and announce it."""
        task = self._registry.create(
            title=title,
            description=description,
            reward=reward,
            requester_address=requester_address,
            escrow_reference=escrow_reference,
        )
        self._logger.info(
            "Task created",
            extra={"task_id": task.id, "reward": str(task.reward), "requester": requester_address},
        )
        self._broadcaster.publish(
            TASK_CREATED,
            {"task_id": task.id, "title": task.title, "reward": str(task.reward)},
        )
        return task

    def accept_task(self, task_id: str, worker_address: str) -> Task:
        """Claim a task for a worker and announce it."""
        task = self._registry.claim(task_id, worker_address)
        self._logger.info("Task accepted", extra={"task_id": task_id, "worker": worker_address})
        self._broadcaster.publish(TASK_ACCEPTED, {"task_id": task.id, "worker": task.worker_address})
        return task

    def report_result(self, task_id: str, worker_address: str, result: str) -> Task:
        """Record the worker's result and announce completion."""
        task = self._registry.submit_result(task_id, worker_address, result)
        self._logger.info(
            "Task result submitted",
            extra={"task_id": task_id, "result_length": len(result)},
        )
        self._broadcaster.publish(TASK_COMPLETED, {"task_id": task.id})
        return task

    async def verify_escrow(self, task_id: str, escrow_account: str | None) -> Task:
        """
        Check the task's escrow reference against the ledger.

        The deposit counts as verified when the referenced transfer exists,
        went to ``escrow_account`` and covers the reward. Otherwise the task
        keeps ``escrow_verified`` False. A ledger outage leaves the task
        unverified and is logged.
        """
        task = self._registry.get(task_id)
        reference = task.escrow_reference
        if reference is None or task.escrow_verified:
            return task
        if escrow_account is None:
            self._logger.warning(
                "No escrow account configured, escrow left unverified",
                extra={"task_id": task_id},
            )
            return task

        try:
            receipt = await self._settlement_client.lookup_transfer(reference)
        except SettlementError as exc:
            self._logger.warning(
                "Escrow lookup failed, escrow left unverified",
                extra={"task_id": task_id, "error_code": exc.error, "error": exc.message},
            )
            return task

        if (
            receipt is None
            or not same_address(receipt.to_address, escrow_account)
            or receipt.amount < task.reward
        ):
            self._logger.info(
                "Escrow reference not confirmed",
                extra={"task_id": task_id, "escrow_reference": reference},
            )
            return task

        verified = self._registry.mark_escrow_verified(task_id, reference)
        self._logger.info(
            "Escrow verified",
            extra={"task_id": task_id, "escrow_reference": reference, "amount": str(receipt.amount)},
        )
        return verified

    # ------------------------------------------------------------------
    # Confirmation and payout
    # ------------------------------------------------------------------

    async def finalize_and_pay(self, task_id: str, credentials: RequesterCredentials) -> Task:
        """
        Confirm the result and pay the worker.

        A task already in ``confirmed`` (an earlier payout failed) skips the
        confirmation and only retries the transfer, after the caller is
        checked against the requester.

        Raises:
            PreconditionError: confirmation refused; nothing was transferred
            PaymentInProgressError: another payout for this task is running
            PaymentFailedError: the task is confirmed but the transfer failed
            InvariantViolationError: a confirmed task has no worker
        """
        if task_id in self._payments_in_flight:
            raise PaymentInProgressError(task_id)

        current = self._registry.get(task_id)
        if current.status is TaskStatus.CONFIRMED:
            task = self._registry.authorize_requester(task_id, credentials.address)
            self._logger.info("Retrying payout for confirmed task", extra={"task_id": task_id})
        else:
            task = self._registry.confirm(task_id, credentials.address)
            self._logger.info("Task confirmed", extra={"task_id": task_id})
            self._broadcaster.publish(TASK_CONFIRMED, {"task_id": task.id})

        task = self._registry.get(task_id)
        if task.worker_address is None:
            self._logger.error(
                "Confirmed task has no worker",
                extra={"task_id": task_id, "status": task.status.value},
            )
            msg = f"Task {task_id} is {task.status.value} but has no worker"
            raise InvariantViolationError(msg)

        self._payments_in_flight.add(task_id)
        try:
            receipt = await self._transfer(task, credentials.signing_identity, task.worker_address)
        except SettlementError as exc:
            snapshot = self._announce_payment_failure(task_id, exc)
            raise PaymentFailedError(task_id, exc, snapshot) from exc
        finally:
            self._payments_in_flight.discard(task_id)

        paid = self._registry.record_payout(task_id, receipt.transfer_reference)
        self._logger.info(
            "Payout sent",
            extra={
                "task_id": task_id,
                "transfer_reference": receipt.transfer_reference,
                "block_number": receipt.block_number,
            },
        )
        self._broadcaster.publish(
            PAYMENT_SENT,
            {
                "task_id": paid.id,
                "transfer_reference": receipt.transfer_reference,
                "amount": str(paid.reward),
                "to": paid.worker_address,
            },
        )
        return paid

    async def _transfer(self, task: Task, from_identity: str, to_address: str) -> TransferReceipt:
        try:
            return await self._settlement_client.transfer(
                from_identity=from_identity,
                to_address=to_address,
                amount=task.reward,
            )
        except SettlementError:
            raise
        except Exception as exc:
            raise NetworkError("Settlement transfer failed") from exc

    def _announce_payment_failure(self, task_id: str, exc: SettlementError) -> dict[str, Any]:
        snapshot = self._registry.get(task_id).to_dict()
        self._logger.warning(
            "Payout failed, task remains confirmed",
            extra={"task_id": task_id, "error_code": exc.error, "error": exc.message},
        )
        self._broadcaster.publish(
            PAYMENT_FAILED,
            {"task_id": task_id, "error": exc.message, "task": snapshot},
        )
        return snapshot

    async def get_balance(self, address: str) -> Decimal:
        """Ledger balance for an address."""
        return await self._settlement_client.get_balance(address)
