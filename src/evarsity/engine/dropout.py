"""Dropout/Refund Processor - withdrawal with tiered refunds."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from evarsity.config import DEFAULT_REFUND_TIERS
from evarsity.engine.events import StudentWithdrawn
from evarsity.engine.formulas import (
    completed_days,
    refund_amount,
    refund_percentage,
    to_storage,
    utcnow,
)
from evarsity.exceptions import CourseNotFoundError
from evarsity.store.models import Course, DropoutRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from sqlalchemy.orm import Session

    from evarsity.config import RefundTier
    from evarsity.engine.enrollment import EnrollmentLedger
    from evarsity.engine.events import UnitOfWork

logger = logging.getLogger(__name__)


class DropoutProcessor:
    """Sole writer of DropoutRecord and sole caller of EnrollmentLedger.remove.

    The record insert and the enrollment delete run in the caller's unit of
    work, so they commit together or not at all.
    """

    def __init__(
        self,
        ledger: EnrollmentLedger,
        default_duration_days: int = 180,
        refund_tiers: Sequence[RefundTier] = DEFAULT_REFUND_TIERS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._ledger = ledger
        self.default_duration_days = default_duration_days
        self.refund_tiers = tuple(refund_tiers)
        self._clock = clock

    def withdraw(
        self,
        uow: UnitOfWork,
        student_id: str,
        course_id: str,
        reason: str | None = None,
    ) -> DropoutRecord:
        """Withdraw a student from a course and record the refund owed.

        Args:
            uow: Open unit of work.
            student_id: The withdrawing student.
            course_id: The course being left.
            reason: Free-text reason given by the student.

        Returns:
            The persisted DropoutRecord.

        Raises:
            NotEnrolledError: If the student is not enrolled in the course.
            InvariantViolationError: If a derived value is out of range.
        """
        session = uow.session
        enrollment = self._ledger.lookup(session, student_id, course_id, for_update=True)

        # Price is read under the same transaction as the insert
        course = session.execute(
            select(Course).where(Course.id == course_id).with_for_update()
        ).scalar_one_or_none()
        if course is None:
            raise CourseNotFoundError(f"Course with id '{course_id}' not found")

        dropout_date = self._clock()
        total_duration = course.duration_days or self.default_duration_days
        completed_duration = completed_days(enrollment.enrolled_at, dropout_date, total_duration)
        percentage = refund_percentage(completed_duration, total_duration, self.refund_tiers)
        amount = refund_amount(course.price, percentage)

        record = DropoutRecord(
            student_id=student_id,
            course_id=course_id,
            enrollment_date=enrollment.enrolled_at,
            dropout_date=to_storage(dropout_date),
            total_course_duration=total_duration,
            completed_duration=completed_duration,
            course_price=course.price,
            refund_percentage=percentage,
            refund_amount=amount,
            reason=reason,
        )
        session.add(record)
        session.flush()

        self._ledger.remove(session, student_id, course_id)

        uow.emit(
            StudentWithdrawn(
                dropout_id=record.id,
                student_id=student_id,
                course_id=course_id,
                refund_percentage=percentage,
                refund_amount=amount,
            )
        )
        logger.info(
            "Student %s withdrew from %s after %d/%d days: refund %s%% = %s",
            student_id,
            course_id,
            completed_duration,
            total_duration,
            percentage,
            amount,
        )
        return record

    def list_dropouts(
        self,
        session: Session,
        student_id: str | None = None,
        course_id: str | None = None,
    ) -> list[DropoutRecord]:
        """Query the dropout audit trail, most recent first."""
        stmt = select(DropoutRecord)
        if student_id is not None:
            stmt = stmt.where(DropoutRecord.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(DropoutRecord.course_id == course_id)
        stmt = stmt.order_by(DropoutRecord.dropout_date.desc(), DropoutRecord.id)
        return list(session.execute(stmt).scalars().all())
