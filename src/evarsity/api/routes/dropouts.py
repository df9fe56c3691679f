"""Withdrawal endpoints."""

from fastapi import APIRouter, Query, status

from evarsity.api.dependencies import EngineDep
from evarsity.api.models import (
    APIResponse,
    DropoutCreate,
    DropoutResponse,
    dropout_to_response,
)

router = APIRouter(prefix="/dropouts", tags=["dropouts"])


@router.get("", response_model=APIResponse[list[DropoutResponse]])
def list_dropouts(
    engine: EngineDep,
    student_id: str | None = Query(default=None, description="Filter by student ID"),
    course_id: str | None = Query(default=None, description="Filter by course ID"),
) -> APIResponse[list[DropoutResponse]]:
    """List dropout records."""
    records = engine.list_dropouts(student_id=student_id, course_id=course_id)
    return APIResponse(data=[dropout_to_response(r) for r in records])


@router.post(
    "",
    response_model=APIResponse[DropoutResponse],
    status_code=status.HTTP_201_CREATED,
)
def withdraw(request: DropoutCreate, engine: EngineDep) -> APIResponse[DropoutResponse]:
    """Withdraw a student and record the refund owed."""
    record = engine.withdraw(request.student_id, request.course_id, reason=request.reason)
    return APIResponse(data=dropout_to_response(record))
