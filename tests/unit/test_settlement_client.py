"""Unit tests for HttpSettlementClient against a mocked gateway."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from taskflow_service.clients.settlement_client import HttpSettlementClient
from taskflow_service.exceptions import NetworkError, TransferRevertedError
from tests.helpers import PAYER, WORKER


def _client(handler, api_key: str | None = None) -> HttpSettlementClient:
    return HttpSettlementClient(
        base_url="http://settlement.test",
        transfer_path="/transfers",
        balance_path="/balances/{address}",
        timeout_seconds=5,
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.unit
async def test_transfer_returns_receipt() -> None:
    """A confirmed gateway answer becomes a TransferReceipt."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "transfer_reference": "tx123",
                "block_number": 42,
                "confirmed_at": "2026-01-01T00:00:00Z",
            },
        )

    client = _client(handler, api_key="secret")
    receipt = await client.transfer(PAYER, WORKER, Decimal("0.01"))
    await client.close()

    assert receipt.transfer_reference == "tx123"
    assert receipt.block_number == 42
    assert receipt.amount == Decimal("0.01")
    assert receipt.to_address == WORKER
    assert receipt.confirmed_at.year == 2026
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/transfers"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert json.loads(seen[0].content) == {"from": PAYER, "to": WORKER, "amount": "0.01"}


@pytest.mark.unit
async def test_transfer_accepts_tx_hash_field() -> None:
    """Gateways that answer with tx_hash are understood too."""
    client = _client(lambda _request: httpx.Response(201, json={"tx_hash": "0xabc"}))

    receipt = await client.transfer(PAYER, WORKER, Decimal("1"))

    assert receipt.transfer_reference == "0xabc"
    assert receipt.block_number is None


@pytest.mark.unit
async def test_transfer_reverted_status_in_body() -> None:
    """A receipt with status reverted raises TransferRevertedError."""
    client = _client(
        lambda _request: httpx.Response(200, json={"tx_hash": "0xdead", "status": "reverted"}),
    )

    with pytest.raises(TransferRevertedError) as exc_info:
        await client.transfer(PAYER, WORKER, Decimal("1"))

    assert exc_info.value.details["transfer_reference"] == "0xdead"


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [402, 409, 422])
async def test_transfer_rejected_by_gateway(status_code: int) -> None:
    """Rejection statuses are reverts, carrying the gateway message."""
    client = _client(
        lambda _request: httpx.Response(
            status_code,
            json={"error": "INSUFFICIENT_FUNDS", "message": "Insufficient funds"},
        ),
    )

    with pytest.raises(TransferRevertedError) as exc_info:
        await client.transfer(PAYER, WORKER, Decimal("1"))

    assert exc_info.value.message == "Insufficient funds"
    assert exc_info.value.details["gateway_error"] == "INSUFFICIENT_FUNDS"


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [500, 503, 404])
async def test_transfer_unexpected_status_is_network_error(status_code: int) -> None:
    """Any other status is reported as the gateway being unavailable."""
    client = _client(lambda _request: httpx.Response(status_code, json={}))

    with pytest.raises(NetworkError) as exc_info:
        await client.transfer(PAYER, WORKER, Decimal("1"))

    assert exc_info.value.details == {"status_code": status_code}


@pytest.mark.unit
async def test_transfer_connection_failure_is_network_error() -> None:
    """Connection errors surface as NetworkError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)

    with pytest.raises(NetworkError, match="Cannot connect"):
        await client.transfer(PAYER, WORKER, Decimal("1"))


@pytest.mark.unit
async def test_transfer_timeout_is_network_error() -> None:
    """Timeouts surface as NetworkError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = _client(handler)

    with pytest.raises(NetworkError):
        await client.transfer(PAYER, WORKER, Decimal("1"))


@pytest.mark.unit
async def test_transfer_receipt_without_reference() -> None:
    """A success answer lacking a reference cannot be trusted."""
    client = _client(lambda _request: httpx.Response(200, json={"block_number": 1}))

    with pytest.raises(NetworkError, match="without a reference"):
        await client.transfer(PAYER, WORKER, Decimal("1"))


@pytest.mark.unit
async def test_transfer_invalid_json() -> None:
    """A non-JSON success body is a gateway failure."""
    client = _client(lambda _request: httpx.Response(200, content=b"not json"))

    with pytest.raises(NetworkError, match="invalid JSON"):
        await client.transfer(PAYER, WORKER, Decimal("1"))


@pytest.mark.unit
async def test_get_balance() -> None:
    """Balances are read from the formatted balance path as Decimals."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"balance": "12.50"})

    client = _client(handler)

    balance = await client.get_balance(WORKER)

    assert balance == Decimal("12.50")
    assert seen == [f"/balances/{WORKER}"]


@pytest.mark.unit
async def test_get_balance_malformed() -> None:
    """A body without a balance is a gateway failure."""
    client = _client(lambda _request: httpx.Response(200, json={"amount": "1"}))

    with pytest.raises(NetworkError, match="malformed"):
        await client.get_balance(WORKER)


@pytest.mark.unit
async def test_get_balance_unexpected_status() -> None:
    """Non-200 balance answers are NetworkErrors."""
    client = _client(lambda _request: httpx.Response(503))

    with pytest.raises(NetworkError):
        await client.get_balance(WORKER)


@pytest.mark.unit
async def test_lookup_transfer_returns_receipt() -> None:
    """A known reference comes back as a receipt."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"from": WORKER, "to": PAYER, "amount": "0.5", "block_number": 7},
        )

    client = _client(handler)
    receipt = await client.lookup_transfer("0xdeposit")

    assert receipt is not None
    assert receipt.transfer_reference == "0xdeposit"
    assert receipt.to_address == PAYER
    assert receipt.amount == Decimal("0.5")
    assert receipt.block_number == 7
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/transfers/0xdeposit"


@pytest.mark.unit
async def test_lookup_transfer_unknown_reference() -> None:
    """A 404 means the transfer does not exist."""
    client = _client(lambda _request: httpx.Response(404, json={"error": "NOT_FOUND"}))

    assert await client.lookup_transfer("0xmissing") is None


@pytest.mark.unit
async def test_lookup_transfer_reverted() -> None:
    """A reverted transfer does not count."""
    client = _client(
        lambda _request: httpx.Response(
            200,
            json={"from": WORKER, "to": PAYER, "amount": "1", "status": "reverted"},
        )
    )

    assert await client.lookup_transfer("0xdeposit") is None


@pytest.mark.unit
async def test_lookup_transfer_malformed() -> None:
    """A receipt without an amount is a NetworkError."""
    client = _client(lambda _request: httpx.Response(200, json={"from": WORKER, "to": PAYER}))

    with pytest.raises(NetworkError):
        await client.lookup_transfer("0xdeposit")


@pytest.mark.unit
async def test_lookup_transfer_unexpected_status() -> None:
    """Gateway failures are NetworkError."""
    client = _client(lambda _request: httpx.Response(503))

    with pytest.raises(NetworkError):
        await client.lookup_transfer("0xdeposit")
