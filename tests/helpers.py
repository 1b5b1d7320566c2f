"""Shared test helpers: config rendering, settlement mocks, event recording."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

from taskflow_service.clients.settlement_client import TransferReceipt

if TYPE_CHECKING:
    from pathlib import Path

    from taskflow_service.services.event_broadcaster import Event

REQUESTER = "0xRequester000000000000000000000000000001"
WORKER = "0xWorker0000000000000000000000000000000002"
OTHER_WORKER = "0xWorker0000000000000000000000000000000003"
PAYER = "0xPlatformEscrow00000000000000000000000004"


def render_config(
    tmp_path: Path,
    *,
    settlement_mode: str = "simulated",
    monitor_enabled: bool = False,
    max_body_size: int = 1048576,
) -> str:
    """Render a complete config.yaml body for tests."""
    return f"""\
service:
  name: "taskflow"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 3001
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{tmp_path / "logs"}"
settlement:
  mode: "{settlement_mode}"
  payer_identity: "{PAYER}"
  timeout_seconds: 5
  base_url: "http://settlement.test"
  transfer_path: "/transfers"
  balance_path: "/balances/{{address}}"
  initial_balances:
    "{PAYER}": "10"
monitor:
  enabled: {"true" if monitor_enabled else "false"}
  interval_seconds: 10
  stale_claim_seconds: 1800
  awaiting_payment_seconds: 120
events:
  history_size: 50
  stream_queue_size: 10
request:
  max_body_size: {max_body_size}
"""


def make_receipt(reference: str, to_address: str = WORKER, amount: str = "0.01") -> TransferReceipt:
    """Build a confirmed transfer receipt."""
    return TransferReceipt(
        transfer_reference=reference,
        from_identity=PAYER,
        to_address=to_address,
        amount=Decimal(amount),
        confirmed_at=datetime.now(UTC),
        block_number=1,
    )


def make_settlement_mock(reference: str = "tx123") -> AsyncMock:
    """Settlement client mock whose transfers succeed with the given reference."""
    settlement = AsyncMock()
    settlement.transfer = AsyncMock(return_value=make_receipt(reference))
    settlement.get_balance = AsyncMock(return_value=Decimal("10"))
    settlement.lookup_transfer = AsyncMock(return_value=None)
    settlement.close = AsyncMock()
    return settlement


class EventRecorder:
    """Listener that remembers every event it receives."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        """Event names in delivery order."""
        return [event.name for event in self.events]

    def named(self, name: str) -> list[Event]:
        """Events with the given name."""
        return [event for event in self.events if event.name == name]


async def create_task(client, reward="0.01", requester=REQUESTER, **extra):
    """POST /tasks and return the created task body."""
    body = {"title": "Audit contract", "reward": reward, "requester": requester, **extra}
    response = await client.post("/tasks", json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def submitted_task(client, reward="0.01"):
    """Create, accept and submit a task over HTTP; return its id."""
    task = await create_task(client, reward=reward)
    task_id = task["task_id"]
    response = await client.post(f"/tasks/{task_id}/accept", json={"worker": WORKER})
    assert response.status_code == 200, response.text
    response = await client.post(
        f"/tasks/{task_id}/submit",
        json={"worker": WORKER, "result": "report text"},
    )
    assert response.status_code == 200, response.text
    return task_id
