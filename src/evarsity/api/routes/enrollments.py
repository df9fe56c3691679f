"""Enrollment endpoints."""

from fastapi import APIRouter, Query, status

from evarsity.api.dependencies import EngineDep
from evarsity.api.models import (
    APIResponse,
    EnrollmentCreate,
    EnrollmentResponse,
    enrollment_to_response,
)

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.get("", response_model=APIResponse[list[EnrollmentResponse]])
def list_enrollments(
    engine: EngineDep,
    student_id: str | None = Query(default=None, description="Filter by student ID"),
    course_id: str | None = Query(default=None, description="Filter by course ID"),
) -> APIResponse[list[EnrollmentResponse]]:
    """List active enrollments."""
    enrollments = engine.list_enrollments(student_id=student_id, course_id=course_id)
    return APIResponse(data=[enrollment_to_response(e) for e in enrollments])


@router.post(
    "",
    response_model=APIResponse[EnrollmentResponse],
    status_code=status.HTTP_201_CREATED,
)
def enroll(request: EnrollmentCreate, engine: EngineDep) -> APIResponse[EnrollmentResponse]:
    """Enroll a student in a course."""
    enrollment = engine.enroll(request.student_id, request.course_id)
    return APIResponse(data=enrollment_to_response(enrollment))


@router.get("/{student_id}/{course_id}", response_model=APIResponse[EnrollmentResponse])
def get_enrollment(
    student_id: str, course_id: str, engine: EngineDep
) -> APIResponse[EnrollmentResponse]:
    """Get the active enrollment for a student and course."""
    enrollment = engine.lookup_enrollment(student_id, course_id)
    return APIResponse(data=enrollment_to_response(enrollment))
