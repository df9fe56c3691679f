"""Server-Sent Events endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from evarsity.api.dependencies import EventManagerDep
from evarsity.api.events import EventType

router = APIRouter(prefix="/events", tags=["events"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


@router.get("/stream")
async def event_stream(
    event_manager: EventManagerDep,
    student_id: str | None = Query(default=None, description="Only events about this student"),
    event_type: list[EventType] | None = Query(
        default=None, description="Only these event types; repeat to allow several"
    ),
) -> StreamingResponse:
    """Stream committed engine events.

    Enrollments, progress changes, issued certificates and withdrawals are
    sent once their transaction has committed. Idle streams get a heartbeat.
    """
    subscriber = event_manager.subscribe(student_id, event_types=event_type)
    return StreamingResponse(
        event_manager.stream(subscriber),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
