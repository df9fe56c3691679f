"""SQLAlchemy models for the engine's storage."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)

from evarsity.exceptions import InvariantViolationError


class CertificateType(StrEnum):
    """Certificate type enum."""

    COMPLETION = "Completion"
    EXCELLENCE = "Excellence"
    PROFICIENCY = "Proficiency"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def _utcnow_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Course(Base):
    """Catalog mirror - price, content totals and duration of a course."""

    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_courses_price_non_negative"),
        CheckConstraint("total_lessons >= 0", name="ck_courses_lessons_non_negative"),
        CheckConstraint("total_assignments >= 0", name="ck_courses_assignments_non_negative"),
        CheckConstraint(
            "duration_days IS NULL OR duration_days > 0", name="ck_courses_duration_positive"
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_lessons: Mapped[int] = mapped_column(Integer, nullable=False)
    total_assignments: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        id: str,
        name: str,
        price: Decimal,
        total_lessons: int = 0,
        total_assignments: int = 0,
        duration_days: int | None = None,
        created_at: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id
        self.created_at = created_at if created_at is not None else _utcnow_naive()
        self.updated_at = self.created_at
        self.name = name
        self.price = price
        self.total_lessons = total_lessons
        self.total_assignments = total_assignments
        self.duration_days = duration_days

    def __repr__(self) -> str:
        return f"<Course(id={self.id!r}, name={self.name!r}, price={self.price!r})>"


class Enrollment(Base):
    """Enrollment model - one active row per (student, course)."""

    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_enrollments_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        student_id: str,
        course_id: str,
        enrolled_at: datetime,
        id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.course_id = course_id
        self.enrolled_at = enrolled_at

    def __repr__(self) -> str:
        return f"<Enrollment(student_id={self.student_id!r}, course_id={self.course_id!r})>"


class LessonCompletion(Base):
    """Membership row: the student completed this lesson."""

    __tablename__ = "lesson_completions"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "lesson_id", name="uq_lesson_completions"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    lesson_id: Mapped[str] = mapped_column(String(64), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        student_id: str,
        course_id: str,
        lesson_id: str,
        completed_at: datetime,
        id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.completed_at = completed_at


class AssignmentSubmission(Base):
    """Membership row: the student submitted this assignment."""

    __tablename__ = "assignment_submissions"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_id", "assignment_id", name="uq_assignment_submissions"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    assignment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        student_id: str,
        course_id: str,
        assignment_id: str,
        submitted_at: datetime,
        id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.course_id = course_id
        self.assignment_id = assignment_id
        self.submitted_at = submitted_at


class ProgressRecord(Base):
    """Per-pair progress with its stored, derived completion percentage."""

    __tablename__ = "progress_records"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_progress_records_pair"),
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100", name="ck_progress_percentage_range"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    total_lessons: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_lessons: Mapped[int] = mapped_column(Integer, nullable=False)
    total_assignments: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_assignments: Mapped[int] = mapped_column(Integer, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        student_id: str,
        course_id: str,
        last_updated: datetime,
        id: str | None = None,
        total_lessons: int = 0,
        completed_lessons: int = 0,
        total_assignments: int = 0,
        submitted_assignments: int = 0,
        percentage: Decimal = Decimal("0.00"),
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.course_id = course_id
        self.total_lessons = total_lessons
        self.completed_lessons = completed_lessons
        self.total_assignments = total_assignments
        self.submitted_assignments = submitted_assignments
        self.percentage = percentage
        self.last_updated = last_updated

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord(student_id={self.student_id!r}, course_id={self.course_id!r}, "
            f"percentage={self.percentage!r})>"
        )


class Certificate(Base):
    """Certificate model - at most one of each type per (student, course)."""

    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_id", "certificate_type", name="uq_certificates_pair_type"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    certificate_type: Mapped[str] = mapped_column(String(20), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)

    def __init__(
        self,
        student_id: str,
        course_id: str,
        certificate_type: str,
        issued_at: datetime,
        url: str,
        id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.course_id = course_id
        self.certificate_type = certificate_type
        self.issued_at = issued_at
        self.url = url

    @property
    def type(self) -> CertificateType:
        """Get certificate_type as CertificateType enum."""
        return CertificateType(self.certificate_type)

    def __repr__(self) -> str:
        return (
            f"<Certificate(student_id={self.student_id!r}, course_id={self.course_id!r}, "
            f"type={self.certificate_type!r})>"
        )


class DropoutRecord(Base):
    """Dropout audit record - append-only, never updated.

    Deliberately carries no foreign key to ``courses`` so the audit trail
    survives catalog deletions.
    """

    __tablename__ = "dropout_records"
    __table_args__ = (
        CheckConstraint(
            "refund_percentage >= 0 AND refund_percentage <= 100",
            name="ck_dropout_refund_percentage_range",
        ),
        CheckConstraint("refund_amount >= 0", name="ck_dropout_refund_amount_non_negative"),
        CheckConstraint(
            "completed_duration >= 0 AND completed_duration <= total_course_duration",
            name="ck_dropout_completed_duration_range",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    enrollment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    dropout_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total_course_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    course_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    refund_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __init__(
        self,
        student_id: str,
        course_id: str,
        enrollment_date: datetime,
        dropout_date: datetime,
        total_course_duration: int,
        completed_duration: int,
        course_price: Decimal,
        refund_percentage: Decimal,
        refund_amount: Decimal,
        reason: str | None = None,
        id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.course_id = course_id
        self.enrollment_date = enrollment_date
        self.dropout_date = dropout_date
        self.total_course_duration = total_course_duration
        self.completed_duration = completed_duration
        self.course_price = course_price
        self.refund_percentage = refund_percentage
        self.refund_amount = refund_amount
        self.reason = reason

    def __repr__(self) -> str:
        return (
            f"<DropoutRecord(student_id={self.student_id!r}, course_id={self.course_id!r}, "
            f"refund_percentage={self.refund_percentage!r})>"
        )


@event.listens_for(DropoutRecord, "before_update")
def _reject_dropout_update(_mapper: object, _connection: object, target: DropoutRecord) -> None:
    raise InvariantViolationError(f"Dropout record '{target.id}' is immutable")
