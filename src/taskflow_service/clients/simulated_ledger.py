"""In-process ledger implementing the settlement interface for local runs."""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from threading import RLock
from typing import TYPE_CHECKING

from taskflow_service.clients.settlement_client import TransferReceipt
from taskflow_service.exceptions import TransferRevertedError
from taskflow_service.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping


class SimulatedLedgerClient:
    """
    Balances held in memory; every transfer is confirmed in its own block.

    A transfer that would overdraw the sender reverts without moving funds.
    Addresses are compared case-insensitively.
    """

    def __init__(
        self,
        initial_balances: Mapping[str, Decimal] | None = None,
        latency_seconds: float = 0.0,
    ) -> None:
        self._lock = RLock()
        self._balances: dict[str, Decimal] = {
            address.casefold(): Decimal(amount)
            for address, amount in (initial_balances or {}).items()
        }
        self._block_numbers = itertools.count(1)
        self._latency_seconds = latency_seconds
        self._receipts: list[TransferReceipt] = []
        self._logger = get_logger(__name__)

    @staticmethod
    def _new_reference() -> str:
        return "0x" + hashlib.sha256(uuid.uuid4().bytes).hexdigest()

    async def transfer(self, from_identity: str, to_address: str, amount: Decimal) -> TransferReceipt:
        """Move funds between two accounts. Raises TransferRevertedError on overdraft."""
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)

        if amount <= 0:
            raise TransferRevertedError("Transfer amount must be positive", {"amount": str(amount)})

        sender = from_identity.casefold()
        recipient = to_address.casefold()
        with self._lock:
            balance = self._balances.get(sender, Decimal(0))
            if balance < amount:
                self._logger.warning(
                    "Simulated transfer reverted: insufficient funds",
                    extra={"from": from_identity, "amount": str(amount), "balance": str(balance)},
                )
                raise TransferRevertedError(
                    "Insufficient funds for transfer",
                    {"balance": str(balance), "amount": str(amount)},
                )
            self._balances[sender] = balance - amount
            self._balances[recipient] = self._balances.get(recipient, Decimal(0)) + amount
            receipt = TransferReceipt(
                transfer_reference=self._new_reference(),
                from_identity=from_identity,
                to_address=to_address,
                amount=amount,
                confirmed_at=datetime.now(UTC),
                block_number=next(self._block_numbers),
            )
            self._receipts.append(receipt)
        return receipt

    async def get_balance(self, address: str) -> Decimal:
        """Current balance; unknown addresses hold zero."""
        with self._lock:
            return self._balances.get(address.casefold(), Decimal(0))

    async def lookup_transfer(self, transfer_reference: str) -> TransferReceipt | None:
        """The receipt with this reference, or None if no such transfer happened."""
        with self._lock:
            for receipt in self._receipts:
                if receipt.transfer_reference == transfer_reference:
                    return receipt
        return None

    def credit(self, address: str, amount: Decimal) -> None:
        """Mint funds into an account."""
        with self._lock:
            key = address.casefold()
            self._balances[key] = self._balances.get(key, Decimal(0)) + amount

    @property
    def receipts(self) -> list[TransferReceipt]:
        """Every confirmed transfer, oldest first."""
        with self._lock:
            return list(self._receipts)

    async def close(self) -> None:
        """Nothing to release."""
