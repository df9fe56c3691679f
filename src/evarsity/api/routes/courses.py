"""Catalog mirror endpoints."""

from fastapi import APIRouter

from evarsity.api.dependencies import EngineDep
from evarsity.api.models import (
    APIResponse,
    CourseResponse,
    CourseUpsert,
    course_to_response,
)

router = APIRouter(prefix="/courses", tags=["courses"])


@router.put("/{course_id}", response_model=APIResponse[CourseResponse])
def upsert_course(
    course_id: str, course: CourseUpsert, engine: EngineDep
) -> APIResponse[CourseResponse]:
    """Create or replace a course's catalog data."""
    saved = engine.upsert_course(
        course_id,
        name=course.name,
        price=course.price,
        total_lessons=course.total_lessons,
        total_assignments=course.total_assignments,
        duration_days=course.duration_days,
    )
    return APIResponse(data=course_to_response(saved))


@router.get("/{course_id}", response_model=APIResponse[CourseResponse])
def get_course(course_id: str, engine: EngineDep) -> APIResponse[CourseResponse]:
    """Get a course by ID."""
    return APIResponse(data=course_to_response(engine.get_course(course_id)))
