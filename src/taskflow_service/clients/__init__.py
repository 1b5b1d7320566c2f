"""Settlement network clients."""

from taskflow_service.clients.settlement_client import (
    HttpSettlementClient,
    SettlementClient,
    TransferReceipt,
)
from taskflow_service.clients.simulated_ledger import SimulatedLedgerClient

__all__ = [
    "HttpSettlementClient",
    "SettlementClient",
    "SimulatedLedgerClient",
    "TransferReceipt",
]
