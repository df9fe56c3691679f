"""Progress endpoints."""

from fastapi import APIRouter

from evarsity.api.dependencies import EngineDep
from evarsity.api.models import (
    ActivityResponse,
    APIResponse,
    AssignmentSubmissionCreate,
    LessonCompletionCreate,
    ProgressResponse,
    activity_to_response,
    progress_to_response,
)

router = APIRouter(prefix="/progress", tags=["progress"])


@router.post("/lessons", response_model=APIResponse[ActivityResponse])
def record_lesson(
    request: LessonCompletionCreate, engine: EngineDep
) -> APIResponse[ActivityResponse]:
    """Record a completed lesson."""
    result = engine.record_lesson_completion(
        request.student_id, request.course_id, request.lesson_id
    )
    return APIResponse(data=activity_to_response(result))


@router.post("/assignments", response_model=APIResponse[ActivityResponse])
def record_assignment(
    request: AssignmentSubmissionCreate, engine: EngineDep
) -> APIResponse[ActivityResponse]:
    """Record a submitted assignment."""
    result = engine.record_assignment_submission(
        request.student_id, request.course_id, request.assignment_id
    )
    return APIResponse(data=activity_to_response(result))


@router.get("/{student_id}", response_model=APIResponse[list[ProgressResponse]])
def list_progress(student_id: str, engine: EngineDep) -> APIResponse[list[ProgressResponse]]:
    """List a student's progress across courses."""
    records = engine.list_progress(student_id)
    return APIResponse(data=[progress_to_response(r) for r in records])


@router.get("/{student_id}/{course_id}", response_model=APIResponse[ProgressResponse])
def get_progress(
    student_id: str, course_id: str, engine: EngineDep
) -> APIResponse[ProgressResponse]:
    """Get progress for a student in a course."""
    return APIResponse(data=progress_to_response(engine.get_progress(student_id, course_id)))
