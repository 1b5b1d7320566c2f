"""Notification endpoints: live Server-Sent Events stream and recent history."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Query
from sse_starlette.sse import EventSourceResponse

from taskflow_service.core.state import get_app_state
from taskflow_service.exceptions import InvalidPayloadError
from taskflow_service.schemas import EventListResponse, EventResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from taskflow_service.services.event_broadcaster import Event, EventBroadcaster

router = APIRouter()

KEEPALIVE_SECONDS = 15.0
RETRY_MILLISECONDS = 3000


def to_sse_message(event: Event) -> dict[str, Any]:
    """Render an event as an SSE message for EventSourceResponse."""
    return {
        "id": str(event.sequence),
        "event": event.name,
        "data": json.dumps(event.payload, default=str),
    }


async def stream_messages(
    broadcaster: EventBroadcaster,
    max_queue_size: int,
    keepalive_seconds: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[dict[str, Any]]:
    """
    Yield SSE messages until the client goes away.

    The subscription is opened on first iteration and closed when the
    generator finishes, so a client that never starts reading holds nothing.
    """
    stream = broadcaster.open_stream(max_queue_size)
    try:
        yield {"retry": RETRY_MILLISECONDS}
        while True:
            try:
                event = await asyncio.wait_for(stream.get(), timeout=keepalive_seconds)
            except TimeoutError:
                yield {"comment": "keepalive"}
                continue
            yield to_sse_message(event)
    finally:
        stream.close()


@router.get("/events")  # nosemgrep
async def stream_events() -> EventSourceResponse:
    """Server-Sent Events stream of task notifications."""
    state = get_app_state()
    messages = stream_messages(state.require_broadcaster(), state.stream_queue_size)
    return EventSourceResponse(messages, headers={"X-Accel-Buffering": "no"})


@router.get("/events/recent", response_model=EventListResponse)  # nosemgrep
async def recent_events(limit: str | None = Query(None)) -> EventListResponse:
    """Return the most recent notifications, oldest first."""
    limit_int: int | None = None
    if limit is not None:
        try:
            limit_int = int(limit)
        except ValueError:
            raise InvalidPayloadError("limit must be an integer") from None
        if limit_int < 1:
            raise InvalidPayloadError("limit must be >= 1")

    events = get_app_state().require_broadcaster().recent(limit_int)
    return EventListResponse(events=[EventResponse(**event.to_dict()) for event in events])
