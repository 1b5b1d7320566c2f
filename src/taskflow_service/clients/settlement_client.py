"""Settlement interface and its HTTP gateway implementation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import httpx

from taskflow_service.exceptions import NetworkError, TransferRevertedError
from taskflow_service.logging import get_logger


@dataclass(frozen=True)
class TransferReceipt:
    """A confirmed ledger transfer."""

    transfer_reference: str
    from_identity: str
    to_address: str
    amount: Decimal
    confirmed_at: datetime
    block_number: int | None = None


class SettlementClient(Protocol):
    """
    What the lifecycle needs from the ledger network.

    Implementations enforce their own timeout/retry policy and return a
    definitive result: a confirmed receipt, or TransferRevertedError /
    NetworkError.
    """

    async def transfer(self, from_identity: str, to_address: str, amount: Decimal) -> TransferReceipt:
        """Move ``amount`` from ``from_identity`` to ``to_address`` and wait for confirmation."""
        ...

    async def lookup_transfer(self, transfer_reference: str) -> TransferReceipt | None:
        """The confirmed transfer behind ``transfer_reference``, or None if unknown or reverted."""
        ...

    async def get_balance(self, address: str) -> Decimal:
        """Current balance of ``address``."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...


def _parse_confirmed_at(raw: object) -> datetime:
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            pass
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return datetime.fromtimestamp(raw, tz=UTC)
    return datetime.now(UTC)


class HttpSettlementClient:
    """
    Client for a settlement gateway that signs, broadcasts and confirms transfers.

    Endpoints:
    1. POST transfer_path: body {"from", "to", "amount"}; answers with a
       receipt once the transfer is confirmed.
    2. GET transfer_path/{reference}: answers the stored receipt, 404 if unknown.
    3. GET balance_path: ``{address}`` placeholder; answers {"balance"}.
    """

    def __init__(
        self,
        base_url: str,
        transfer_path: str,
        balance_path: str,
        timeout_seconds: int,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._transfer_path = transfer_path
        self._balance_path = balance_path
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            transport=transport,
        )

    async def transfer(self, from_identity: str, to_address: str, amount: Decimal) -> TransferReceipt:
        """
        Submit a transfer and wait for the gateway's confirmed receipt.

        Raises:
            TransferRevertedError: the gateway reports a rejected or reverted transfer
            NetworkError: connection/timeout/unexpected errors
        """
        logger = get_logger(__name__)
        log_context = {"to": to_address, "amount": str(amount), "base_url": self._base_url}

        try:
            response = await self._client.post(
                self._transfer_path,
                json={"from": from_identity, "to": to_address, "amount": str(amount)},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning(
                "Settlement gateway connection failed",
                extra={"error": str(exc), **log_context},
            )
            raise NetworkError("Cannot connect to settlement gateway") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Settlement gateway HTTP error",
                extra={"error": str(exc), **log_context},
            )
            raise NetworkError("Settlement gateway request failed") from exc

        if response.status_code in (200, 201):
            body = self._json_body(response)
            reference = body.get("transfer_reference") or body.get("tx_hash")
            if body.get("status") == "reverted":
                raise TransferRevertedError(
                    f"Transfer reverted: {reference}",
                    {"transfer_reference": reference},
                )
            if not isinstance(reference, str) or not reference:
                logger.warning("Settlement receipt missing reference", extra=log_context)
                raise NetworkError("Settlement gateway returned a receipt without a reference")
            block_number = body.get("block_number")
            return TransferReceipt(
                transfer_reference=reference,
                from_identity=from_identity,
                to_address=to_address,
                amount=amount,
                confirmed_at=_parse_confirmed_at(body.get("confirmed_at")),
                block_number=block_number if isinstance(block_number, int) else None,
            )

        if response.status_code in (402, 409, 422):
            body = self._json_body(response)
            raise TransferRevertedError(
                str(body.get("message", "Transfer rejected by settlement gateway")),
                {"gateway_error": body.get("error"), "status_code": response.status_code},
            )

        logger.warning(
            "Settlement gateway unexpected status on transfer",
            extra={"status_code": response.status_code, **log_context},
        )
        raise NetworkError(
            "Settlement gateway returned unexpected status",
            {"status_code": response.status_code},
        )

    async def lookup_transfer(self, transfer_reference: str) -> TransferReceipt | None:
        """
        Fetch a confirmed transfer by reference.

        Returns None when the gateway does not know the reference or reports
        it reverted.

        Raises:
            NetworkError: connection/timeout/unexpected errors or a malformed receipt
        """
        logger = get_logger(__name__)
        path = f"{self._transfer_path.rstrip('/')}/{transfer_reference}"

        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            logger.warning(
                "Settlement gateway transfer lookup failed",
                extra={"error": str(exc), "transfer_reference": transfer_reference},
            )
            raise NetworkError("Cannot look up transfer on settlement gateway") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning(
                "Settlement gateway unexpected status on transfer lookup",
                extra={"status_code": response.status_code, "transfer_reference": transfer_reference},
            )
            raise NetworkError(
                "Settlement gateway returned unexpected status",
                {"status_code": response.status_code},
            )

        body = self._json_body(response)
        if body.get("status") == "reverted":
            return None
        try:
            from_identity = str(body["from"])
            to_address = str(body["to"])
            amount = Decimal(str(body["amount"]))
        except (KeyError, InvalidOperation) as exc:
            raise NetworkError("Settlement gateway returned a malformed transfer") from exc
        block_number = body.get("block_number")
        return TransferReceipt(
            transfer_reference=transfer_reference,
            from_identity=from_identity,
            to_address=to_address,
            amount=amount,
            confirmed_at=_parse_confirmed_at(body.get("confirmed_at")),
            block_number=block_number if isinstance(block_number, int) else None,
        )

    async def get_balance(self, address: str) -> Decimal:
        """
        Query an address balance.

        Raises:
            NetworkError: connection/timeout/unexpected errors
        """
        logger = get_logger(__name__)
        path = self._balance_path.format(address=address)

        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            logger.warning(
                "Settlement gateway balance query failed",
                extra={"error": str(exc), "address": address, "base_url": self._base_url},
            )
            raise NetworkError("Cannot query balance from settlement gateway") from exc

        if response.status_code != 200:
            logger.warning(
                "Settlement gateway unexpected status on balance query",
                extra={"status_code": response.status_code, "address": address},
            )
            raise NetworkError(
                "Settlement gateway returned unexpected status",
                {"status_code": response.status_code},
            )

        body = self._json_body(response)
        try:
            return Decimal(str(body["balance"]))
        except (KeyError, InvalidOperation) as exc:
            raise NetworkError("Settlement gateway returned a malformed balance") from exc

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError("Settlement gateway returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise NetworkError("Settlement gateway returned a non-object body")
        return body

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
