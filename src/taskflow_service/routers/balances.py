"""Ledger balance lookup."""

from __future__ import annotations

from fastapi import APIRouter

from taskflow_service.core.state import get_app_state
from taskflow_service.schemas import BalanceResponse

router = APIRouter()


@router.get("/balances/{address}", response_model=BalanceResponse)
async def get_balance(address: str) -> BalanceResponse:
    """Query the settlement network for an address balance."""
    coordinator = get_app_state().require_coordinator()
    balance = await coordinator.get_balance(address)
    return BalanceResponse(address=address, balance=str(balance))
