"""Task lifecycle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from taskflow_service.core.state import get_app_state
from taskflow_service.exceptions import InvalidPayloadError
from taskflow_service.models import TaskStatus
from taskflow_service.routers.validation import (
    extract_optional_string,
    extract_reward,
    extract_string,
    parse_json_body,
)
from taskflow_service.services.lifecycle_coordinator import RequesterCredentials

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /tasks: create task (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.post("/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Post a new task."""
    data = parse_json_body(await request.body())

    title = extract_string(data, "title")
    requester = extract_string(data, "requester")
    reward = extract_reward(data)
    description = extract_optional_string(data, "description") or ""
    escrow_reference = extract_optional_string(data, "escrow_reference")

    state = get_app_state()
    coordinator = state.require_coordinator()
    task = coordinator.request_task(
        title=title,
        description=description,
        reward=reward,
        requester_address=requester,
        escrow_reference=escrow_reference,
    )
    if escrow_reference is not None:
        task = await coordinator.verify_escrow(task.id, state.payer_identity)
    return JSONResponse(status_code=201, content=task.to_dict())


# ---------------------------------------------------------------------------
# GET /tasks: list tasks (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.get("/tasks")
async def list_tasks(request: Request) -> JSONResponse:
    """List tasks in creation order, optionally filtered by status."""
    status_raw = request.query_params.get("status")
    status: TaskStatus | None = None
    if status_raw is not None:
        try:
            status = TaskStatus(status_raw.lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in TaskStatus)
            raise InvalidPayloadError(f"status must be one of: {allowed}") from exc

    registry = get_app_state().require_registry()
    tasks = registry.list(status)
    return JSONResponse(status_code=200, content={"tasks": [task.to_dict() for task in tasks]})


@router.get("/tasks/{task_id}")
async def get_task(task_id: str) -> JSONResponse:
    """Fetch a single task."""
    registry = get_app_state().require_registry()
    return JSONResponse(status_code=200, content=registry.get(task_id).to_dict())


# ---------------------------------------------------------------------------
# Accept endpoint
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/accept")
async def accept_task(task_id: str, request: Request) -> JSONResponse:
    """Claim an open task for a worker."""
    data = parse_json_body(await request.body())
    worker = extract_string(data, "worker")

    coordinator = get_app_state().require_coordinator()
    task = coordinator.accept_task(task_id, worker)
    return JSONResponse(status_code=200, content=task.to_dict())


# ---------------------------------------------------------------------------
# Submit endpoint
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/submit")
async def submit_result(task_id: str, request: Request) -> JSONResponse:
    """Submit the worker's result."""
    data = parse_json_body(await request.body())
    worker = extract_string(data, "worker")
    if "result" not in data or not isinstance(data["result"], str):
        raise InvalidPayloadError("Field 'result' must be a string")

    coordinator = get_app_state().require_coordinator()
    task = coordinator.report_result(task_id, worker, data["result"])
    return JSONResponse(status_code=200, content=task.to_dict())


# ---------------------------------------------------------------------------
# Confirm endpoint
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/confirm")
async def confirm_task(task_id: str, request: Request) -> JSONResponse:
    """
    Confirm the result and pay the worker.

    Calling this again on a task left in ``confirmed`` by a failed payout
    retries the payout.
    """
    data = parse_json_body(await request.body())
    requester = extract_string(data, "requester")

    state = get_app_state()
    if state.payer_identity is None:
        msg = "Payer identity not configured"
        raise RuntimeError(msg)

    coordinator = state.require_coordinator()
    task = await coordinator.finalize_and_pay(
        task_id,
        RequesterCredentials(address=requester, signing_identity=state.payer_identity),
    )
    return JSONResponse(status_code=200, content=task.to_dict())
