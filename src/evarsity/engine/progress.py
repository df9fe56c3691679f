"""Progress Accumulator - per-pair completion state derived from activity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from evarsity.engine.events import ProgressChanged
from evarsity.engine.formulas import completion_percentage, to_storage, utcnow
from evarsity.exceptions import CourseNotFoundError
from evarsity.store.models import (
    AssignmentSubmission,
    Course,
    LessonCompletion,
    ProgressRecord,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from decimal import Decimal

    from sqlalchemy.orm import Session

    from evarsity.engine.certificates import CertificateIssuer
    from evarsity.engine.enrollment import EnrollmentLedger
    from evarsity.engine.events import UnitOfWork
    from evarsity.store.models import Certificate

logger = logging.getLogger(__name__)


@dataclass
class ProgressResult:
    """Outcome of recording one activity event.

    Attributes:
        progress: The pair's progress record after the event.
        previous_percentage: Percentage before the event.
        recorded: False when the lesson/assignment had already been recorded.
        certificate: Completion certificate issued by this event, if any.
    """

    progress: ProgressRecord
    previous_percentage: Decimal
    recorded: bool
    certificate: Certificate | None = None


class ProgressAccumulator:
    """Sole writer of ProgressRecord.

    Completion is tracked as membership (one row per completed lesson or
    submitted assignment), so replaying an event never double-counts. After
    each new membership row the percentage is recomputed from the counts and
    the current catalog totals, and the change is handed to the certificate
    issuer within the same transaction.
    """

    def __init__(
        self,
        ledger: EnrollmentLedger,
        certificates: CertificateIssuer,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._ledger = ledger
        self._certificates = certificates
        self._clock = clock

    def record_lesson_completion(
        self, uow: UnitOfWork, student_id: str, course_id: str, lesson_id: str
    ) -> ProgressResult:
        """Record that a student completed a lesson.

        Raises:
            NotEnrolledError: If the student is not enrolled in the course.
        """
        session = uow.session
        self._ledger.lookup(session, student_id, course_id, for_update=True)

        existing = session.execute(
            select(LessonCompletion.id).where(
                LessonCompletion.student_id == student_id,
                LessonCompletion.course_id == course_id,
                LessonCompletion.lesson_id == lesson_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            logger.debug(
                "Lesson %s already completed by %s in %s", lesson_id, student_id, course_id
            )
            return self._unchanged(session, student_id, course_id)

        session.add(
            LessonCompletion(
                student_id=student_id,
                course_id=course_id,
                lesson_id=lesson_id,
                completed_at=to_storage(self._clock()),
            )
        )
        session.flush()
        return self._recompute(uow, student_id, course_id)

    def record_assignment_submission(
        self, uow: UnitOfWork, student_id: str, course_id: str, assignment_id: str
    ) -> ProgressResult:
        """Record that a student submitted an assignment.

        Raises:
            NotEnrolledError: If the student is not enrolled in the course.
        """
        session = uow.session
        self._ledger.lookup(session, student_id, course_id, for_update=True)

        existing = session.execute(
            select(AssignmentSubmission.id).where(
                AssignmentSubmission.student_id == student_id,
                AssignmentSubmission.course_id == course_id,
                AssignmentSubmission.assignment_id == assignment_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            logger.debug(
                "Assignment %s already submitted by %s in %s",
                assignment_id,
                student_id,
                course_id,
            )
            return self._unchanged(session, student_id, course_id)

        session.add(
            AssignmentSubmission(
                student_id=student_id,
                course_id=course_id,
                assignment_id=assignment_id,
                submitted_at=to_storage(self._clock()),
            )
        )
        session.flush()
        return self._recompute(uow, student_id, course_id)

    def open_record(self, uow: UnitOfWork, student_id: str, course_id: str) -> ProgressResult:
        """Create the pair's progress record, or refresh it on re-enrollment.

        Membership from an earlier enrollment is kept, so a returning student
        resumes where they left off. If the catalog totals changed while they
        were away, the refreshed percentage goes through the same
        ProgressChanged path as an activity event, certificate check included.
        """
        session = uow.session
        if self.find(session, student_id, course_id) is None:
            record = self._create_record(session, student_id, course_id)
            return ProgressResult(
                progress=record, previous_percentage=record.percentage, recorded=False
            )
        return self._recompute(uow, student_id, course_id, report_unchanged=False)

    def find(self, session: Session, student_id: str, course_id: str) -> ProgressRecord | None:
        """Progress record for the pair, or None."""
        stmt = select(ProgressRecord).where(
            ProgressRecord.student_id == student_id,
            ProgressRecord.course_id == course_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    def list_progress(self, session: Session, student_id: str) -> list[ProgressRecord]:
        """All progress records of a student, ordered by course."""
        stmt = (
            select(ProgressRecord)
            .where(ProgressRecord.student_id == student_id)
            .order_by(ProgressRecord.course_id)
        )
        return list(session.execute(stmt).scalars().all())

    # --- internals ---

    def _unchanged(self, session: Session, student_id: str, course_id: str) -> ProgressResult:
        record = self.find(session, student_id, course_id)
        if record is None:
            record = self._create_record(session, student_id, course_id)
        return ProgressResult(
            progress=record,
            previous_percentage=record.percentage,
            recorded=False,
        )

    def _create_record(self, session: Session, student_id: str, course_id: str) -> ProgressRecord:
        record = ProgressRecord(
            student_id=student_id,
            course_id=course_id,
            last_updated=to_storage(self._clock()),
        )
        session.add(record)
        self._apply_counts(session, record)
        session.flush()
        return record

    def _recompute(
        self,
        uow: UnitOfWork,
        student_id: str,
        course_id: str,
        report_unchanged: bool = True,
    ) -> ProgressResult:
        session = uow.session
        record = self.find(session, student_id, course_id)
        if record is None:
            record = self._create_record(session, student_id, course_id)

        old_percentage = record.percentage
        self._apply_counts(session, record)
        session.flush()

        if not report_unchanged and record.percentage == old_percentage:
            return ProgressResult(
                progress=record, previous_percentage=old_percentage, recorded=False
            )

        change = ProgressChanged(
            student_id=student_id,
            course_id=course_id,
            old_percentage=old_percentage,
            new_percentage=record.percentage,
        )
        uow.emit(change)
        logger.info(
            "Progress of %s in %s: %s -> %s",
            student_id,
            course_id,
            old_percentage,
            record.percentage,
        )

        certificate = self._certificates.on_progress_changed(uow, change)
        return ProgressResult(
            progress=record,
            previous_percentage=old_percentage,
            recorded=True,
            certificate=certificate,
        )

    def _apply_counts(self, session: Session, record: ProgressRecord) -> None:
        course = session.get(Course, record.course_id)
        if course is None:
            raise CourseNotFoundError(f"Course with id '{record.course_id}' not found")

        completed = session.execute(
            select(func.count(LessonCompletion.id)).where(
                LessonCompletion.student_id == record.student_id,
                LessonCompletion.course_id == record.course_id,
            )
        ).scalar_one()
        submitted = session.execute(
            select(func.count(AssignmentSubmission.id)).where(
                AssignmentSubmission.student_id == record.student_id,
                AssignmentSubmission.course_id == record.course_id,
            )
        ).scalar_one()

        # Computed before any field is touched: an invariant failure leaves
        # the record as it was.
        percentage = completion_percentage(
            completed, submitted, course.total_lessons, course.total_assignments
        )
        record.total_lessons = course.total_lessons
        record.completed_lessons = completed
        record.total_assignments = course.total_assignments
        record.submitted_assignments = submitted
        record.percentage = percentage
        record.last_updated = to_storage(self._clock())
