"""Semester advancement endpoints."""

from fastapi import APIRouter

from evarsity.api.dependencies import EngineDep
from evarsity.api.models import (
    AdvancementResponse,
    APIResponse,
    CanAdvanceRequest,
    CanAdvanceResponse,
    EvaluateRequest,
    advancement_to_response,
)

router = APIRouter(prefix="/semesters", tags=["semesters"])


@router.post("/can-advance", response_model=APIResponse[CanAdvanceResponse])
def can_advance(request: CanAdvanceRequest, engine: EngineDep) -> APIResponse[CanAdvanceResponse]:
    """Check known credits and GPA against the semester's prerequisite."""
    eligible = engine.can_advance(
        request.course_id,
        request.current_semester,
        request.student_credits,
        request.student_gpa,
    )
    return APIResponse(data=CanAdvanceResponse(eligible=eligible))


@router.post("/evaluate", response_model=APIResponse[AdvancementResponse])
def evaluate(request: EvaluateRequest, engine: EngineDep) -> APIResponse[AdvancementResponse]:
    """Grade subject scores, derive credits and GPA, then decide advancement."""
    scale = engine.semester_gate.grading_scale
    results = [scale.result_for(s.subject, s.credits, s.percentage) for s in request.subjects]
    decision = engine.evaluate_advancement(request.course_id, request.current_semester, results)
    return APIResponse(data=advancement_to_response(decision, results))
