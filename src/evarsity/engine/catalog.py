"""Catalog mirror - course data supplied by the catalog collaborator."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete

from evarsity.engine.formulas import to_storage, utcnow
from evarsity.exceptions import CourseNotFoundError
from evarsity.store.models import Course

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class CourseCatalog:
    """Keeps the local copy of price, content totals and duration current."""

    def upsert(
        self,
        session: Session,
        course_id: str,
        name: str,
        price: Decimal,
        total_lessons: int = 0,
        total_assignments: int = 0,
        duration_days: int | None = None,
    ) -> Course:
        """Create or replace a course's catalog data.

        Raises:
            ValueError: If price, totals or duration are out of range.
        """
        price = Decimal(str(price))
        if price < 0:
            raise ValueError(f"Course price must be non-negative, got {price}")
        if total_lessons < 0 or total_assignments < 0:
            raise ValueError("Lesson and assignment totals must be non-negative")
        if duration_days is not None and duration_days <= 0:
            raise ValueError(f"Course duration must be positive, got {duration_days}")

        course = session.get(Course, course_id)
        if course is None:
            course = Course(
                id=course_id,
                name=name,
                price=price,
                total_lessons=total_lessons,
                total_assignments=total_assignments,
                duration_days=duration_days,
            )
            session.add(course)
            logger.info("Added course %s to catalog", course_id)
        else:
            course.name = name
            course.price = price
            course.total_lessons = total_lessons
            course.total_assignments = total_assignments
            course.duration_days = duration_days
            course.updated_at = to_storage(utcnow())
            logger.info("Updated catalog data for course %s", course_id)
        session.flush()
        return course

    def get(self, session: Session, course_id: str) -> Course:
        """Get course by ID.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = session.get(Course, course_id)
        if course is None:
            raise CourseNotFoundError(f"Course with id '{course_id}' not found")
        return course

    def delete(self, session: Session, course_id: str) -> None:
        """Remove a course.

        The database cascades the delete to enrollments, progress, membership
        rows and certificates. Dropout records are kept.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        result = session.execute(delete(Course).where(Course.id == course_id))
        if result.rowcount == 0:
            raise CourseNotFoundError(f"Course with id '{course_id}' not found")
        logger.info("Deleted course %s and its dependent rows", course_id)
