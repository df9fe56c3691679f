"""Pydantic models for REST API."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from evarsity.store.models import CertificateType

T = TypeVar("T")

ID_FIELD = Field(..., min_length=1, max_length=64)


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Course models


class CourseUpsert(BaseModel):
    """Request model for creating or replacing a course's catalog data."""

    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    total_lessons: int = Field(default=0, ge=0)
    total_assignments: int = Field(default=0, ge=0)
    duration_days: int | None = Field(default=None, gt=0)


class CourseResponse(BaseModel):
    """Response model for a course."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: Decimal
    total_lessons: int
    total_assignments: int
    duration_days: int | None
    created_at: datetime
    updated_at: datetime


def course_to_response(course: Any) -> CourseResponse:
    """Convert a Course model to CourseResponse."""
    return CourseResponse.model_validate(course)


# Enrollment models


class EnrollmentCreate(BaseModel):
    """Request model for enrolling a student."""

    student_id: str = ID_FIELD
    course_id: str = ID_FIELD


class EnrollmentResponse(BaseModel):
    """Response model for an enrollment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    course_id: str
    enrolled_at: datetime


def enrollment_to_response(enrollment: Any) -> EnrollmentResponse:
    """Convert an Enrollment model to EnrollmentResponse."""
    return EnrollmentResponse.model_validate(enrollment)


# Progress models


class LessonCompletionCreate(BaseModel):
    student_id: str = ID_FIELD
    course_id: str = ID_FIELD
    lesson_id: str = ID_FIELD


class AssignmentSubmissionCreate(BaseModel):
    student_id: str = ID_FIELD
    course_id: str = ID_FIELD
    assignment_id: str = ID_FIELD


class ProgressResponse(BaseModel):
    """Response model for a progress record."""

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    course_id: str
    total_lessons: int
    completed_lessons: int
    total_assignments: int
    submitted_assignments: int
    percentage: Decimal
    last_updated: datetime


def progress_to_response(progress: Any) -> ProgressResponse:
    """Convert a ProgressRecord model to ProgressResponse."""
    return ProgressResponse.model_validate(progress)


# Certificate models


class CertificateCreate(BaseModel):
    """Request model for granting a manual certificate."""

    student_id: str = ID_FIELD
    course_id: str = ID_FIELD
    certificate_type: CertificateType


class CertificateResponse(BaseModel):
    """Response model for a certificate."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    course_id: str
    certificate_type: CertificateType
    issued_at: datetime
    url: str


def certificate_to_response(certificate: Any) -> CertificateResponse:
    """Convert a Certificate model to CertificateResponse."""
    return CertificateResponse.model_validate(certificate)


class ActivityResponse(BaseModel):
    """Response model for a recorded lesson or assignment."""

    progress: ProgressResponse
    previous_percentage: Decimal
    recorded: bool
    certificate: CertificateResponse | None = None


def activity_to_response(result: Any) -> ActivityResponse:
    """Convert a ProgressResult to ActivityResponse."""
    return ActivityResponse(
        progress=progress_to_response(result.progress),
        previous_percentage=result.previous_percentage,
        recorded=result.recorded,
        certificate=(
            certificate_to_response(result.certificate) if result.certificate else None
        ),
    )


# Dropout models


class DropoutCreate(BaseModel):
    """Request model for withdrawing a student."""

    student_id: str = ID_FIELD
    course_id: str = ID_FIELD
    reason: str | None = Field(default=None, max_length=2000)


class DropoutResponse(BaseModel):
    """Response model for a dropout record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    course_id: str
    enrollment_date: datetime
    dropout_date: datetime
    total_course_duration: int
    completed_duration: int
    course_price: Decimal
    refund_percentage: Decimal
    refund_amount: Decimal
    reason: str | None


def dropout_to_response(dropout: Any) -> DropoutResponse:
    """Convert a DropoutRecord model to DropoutResponse."""
    return DropoutResponse.model_validate(dropout)


# Semester models


class CanAdvanceRequest(BaseModel):
    """Request model for a direct credits/GPA advancement check."""

    course_id: str = ID_FIELD
    current_semester: int = Field(..., ge=1)
    student_credits: int = Field(..., ge=0)
    student_gpa: Decimal = Field(..., ge=0)


class CanAdvanceResponse(BaseModel):
    eligible: bool


class SubjectScore(BaseModel):
    """One subject's credits and percentage score."""

    subject: str = Field(..., min_length=1, max_length=255)
    credits: int = Field(..., ge=0)
    percentage: Decimal = Field(..., ge=0, le=100)


class EvaluateRequest(BaseModel):
    """Request model for evaluating advancement from graded subjects."""

    course_id: str = ID_FIELD
    current_semester: int = Field(..., ge=1)
    subjects: list[SubjectScore]


class SubjectGradeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subject: str
    credits: int
    grade: str | None
    grade_points: Decimal


class AdvancementResponse(BaseModel):
    """Response model for an advancement decision."""

    eligible: bool
    earned_credits: int
    gpa: Decimal
    next_semester: int
    min_credits_required: int
    min_gpa_required: Decimal
    subjects: list[SubjectGradeResponse] = Field(default_factory=list)


def advancement_to_response(decision: Any, results: list[Any]) -> AdvancementResponse:
    """Convert an AdvancementDecision and its graded subjects to AdvancementResponse."""
    return AdvancementResponse(
        eligible=decision.eligible,
        earned_credits=decision.earned_credits,
        gpa=decision.gpa,
        next_semester=decision.next_semester,
        min_credits_required=decision.prerequisite.min_credits_required,
        min_gpa_required=decision.prerequisite.min_gpa_required,
        subjects=[SubjectGradeResponse.model_validate(r) for r in results],
    )
