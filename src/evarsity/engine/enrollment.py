"""Enrollment Ledger - which student is active in which course, and since when."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from evarsity.engine.events import StudentEnrolled
from evarsity.engine.formulas import to_storage, utcnow
from evarsity.exceptions import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    InvariantViolationError,
    NotEnrolledError,
)
from evarsity.store.models import Course, Enrollment

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sqlalchemy.orm import Session

    from evarsity.engine.events import UnitOfWork

logger = logging.getLogger(__name__)


class EnrollmentLedger:
    """Authoritative record of active enrollments.

    Rows are created by :meth:`enroll` and removed only through
    :meth:`remove`, which the dropout processor calls inside its own
    transaction. Nothing else deletes enrollments.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    def enroll(
        self,
        uow: UnitOfWork,
        student_id: str,
        course_id: str,
        enrolled_at: datetime | None = None,
    ) -> Enrollment:
        """Open an enrollment for a pair.

        Args:
            uow: Open unit of work.
            student_id: The student's opaque ID.
            course_id: The course's ID in the catalog mirror.
            enrolled_at: Enrollment time. Defaults to now.

        Returns:
            The new Enrollment.

        Raises:
            CourseNotFoundError: If the course is not in the catalog.
            AlreadyEnrolledError: If the pair already has an active enrollment.
        """
        session = uow.session
        if session.get(Course, course_id) is None:
            raise CourseNotFoundError(f"Course with id '{course_id}' not found")

        if self.find(session, student_id, course_id) is not None:
            raise AlreadyEnrolledError(
                f"Student '{student_id}' is already enrolled in course '{course_id}'"
            )

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            enrolled_at=to_storage(enrolled_at if enrolled_at is not None else self._clock()),
        )
        session.add(enrollment)
        try:
            session.flush()
        except IntegrityError as e:
            raise AlreadyEnrolledError(
                f"Student '{student_id}' is already enrolled in course '{course_id}'"
            ) from e

        uow.emit(
            StudentEnrolled(
                student_id=student_id,
                course_id=course_id,
                enrolled_at=enrollment.enrolled_at,
            )
        )
        logger.info("Enrolled student %s in course %s", student_id, course_id)
        return enrollment

    def find(
        self,
        session: Session,
        student_id: str,
        course_id: str,
        for_update: bool = False,
    ) -> Enrollment | None:
        """Active enrollment for the pair, or None."""
        stmt = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalar_one_or_none()

    def lookup(
        self,
        session: Session,
        student_id: str,
        course_id: str,
        for_update: bool = False,
    ) -> Enrollment:
        """Active enrollment for the pair.

        Raises:
            NotEnrolledError: If the student is not enrolled in the course.
        """
        enrollment = self.find(session, student_id, course_id, for_update=for_update)
        if enrollment is None:
            raise NotEnrolledError(
                f"Student '{student_id}' is not currently enrolled in course '{course_id}'"
            )
        return enrollment

    def list_enrollments(
        self,
        session: Session,
        student_id: str | None = None,
        course_id: str | None = None,
    ) -> list[Enrollment]:
        """List enrollments, oldest first, optionally filtered."""
        stmt = select(Enrollment)
        if student_id is not None:
            stmt = stmt.where(Enrollment.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(Enrollment.course_id == course_id)
        stmt = stmt.order_by(Enrollment.enrolled_at, Enrollment.id)
        return list(session.execute(stmt).scalars().all())

    def remove(self, session: Session, student_id: str, course_id: str) -> None:
        """Delete the pair's enrollment. Dropout processing only.

        Raises:
            InvariantViolationError: If anything other than exactly one row
                would be deleted.
        """
        result = session.execute(
            delete(Enrollment).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
            )
        )
        if result.rowcount != 1:
            raise InvariantViolationError(
                f"Expected to remove one enrollment for student '{student_id}' in course "
                f"'{course_id}', removed {result.rowcount}"
            )
