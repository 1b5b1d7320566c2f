"""Pydantic request/response models for the API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    payer_identity: str | None
    payer_balance: str | None
    total_tasks: int
    tasks_by_status: dict[str, int]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class TaskResponse(BaseModel):
    """Full task detail response model."""

    model_config = ConfigDict(extra="forbid")
    task_id: str
    title: str
    description: str
    reward: str
    requester: str
    worker: str | None
    status: str
    result: str | None
    escrow_reference: str | None
    escrow_verified: bool
    payout_reference: str | None
    created_at: str
    updated_at: str


class TaskListResponse(BaseModel):
    """Response model for GET /tasks."""

    model_config = ConfigDict(extra="forbid")
    tasks: list[TaskResponse]


class BalanceResponse(BaseModel):
    """Response model for GET /balances/{address}."""

    model_config = ConfigDict(extra="forbid")
    address: str
    balance: str


class EventResponse(BaseModel):
    """A recorded notification."""

    model_config = ConfigDict(extra="forbid")
    sequence: int
    event: str
    data: dict[str, Any]
    emitted_at: str


class EventListResponse(BaseModel):
    """Response model for GET /events/recent."""

    model_config = ConfigDict(extra="forbid")
    events: list[EventResponse]
