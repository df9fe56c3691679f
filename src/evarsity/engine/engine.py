"""AcademicEngine - Main API for the academic lifecycle engine."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import OperationalError

from evarsity.config import EngineConfig
from evarsity.engine.catalog import CourseCatalog
from evarsity.engine.certificates import CertificateIssuer
from evarsity.engine.dropout import DropoutProcessor
from evarsity.engine.enrollment import EnrollmentLedger
from evarsity.engine.events import UnitOfWork
from evarsity.engine.formulas import utcnow
from evarsity.engine.locks import PairLocks
from evarsity.engine.progress import ProgressAccumulator
from evarsity.engine.semester import GradingScale, SemesterGate
from evarsity.exceptions import ConcurrencyConflictError, NotEnrolledError
from evarsity.store.database import Database
from evarsity.store.models import CertificateType

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from datetime import datetime
    from decimal import Decimal

    from evarsity.engine.events import EventPublisher
    from evarsity.engine.progress import ProgressResult
    from evarsity.engine.semester import AdvancementDecision, SubjectResult
    from evarsity.store.models import (
        Certificate,
        Course,
        DropoutRecord,
        Enrollment,
        ProgressRecord,
    )

logger = logging.getLogger(__name__)

# SQLite reports lock contention as OperationalError with one of these messages
_LOCK_ERRORS = ("database is locked", "database table is locked", "database schema is locked")


def _is_lock_conflict(error: OperationalError) -> bool:
    message = str(error.orig).lower() if error.orig is not None else str(error).lower()
    return any(text in message for text in _LOCK_ERRORS)


class AcademicEngine:
    """Main API for engine operations.

    Every mutating call runs as one unit of work: it holds the lock of the
    (student, course) pair it touches, executes in a single database
    transaction, and publishes its domain events only after that transaction
    has committed.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        publisher: EventPublisher | None = None,
        clock: Callable[[], datetime] = utcnow,
        database: Database | None = None,
    ) -> None:
        """Initialize the engine.

        Creates database and tables if they don't exist.

        Args:
            config: Engine configuration. Defaults to EngineConfig().
            publisher: Receives domain events after commit.
            clock: Source of the current time.
            database: Pre-built database. Defaults to one at config.database_path.
        """
        self.config = config if config is not None else EngineConfig()
        self._db = database if database is not None else Database(self.config.database_path)
        self._db.create_tables()
        self._publisher = publisher
        self._locks = PairLocks()

        self.catalog = CourseCatalog()
        self.ledger = EnrollmentLedger(clock=clock)
        self.certificates = CertificateIssuer(
            threshold=self.config.completion_threshold,
            url_prefix=self.config.certificate_url_prefix,
            clock=clock,
        )
        self.progress = ProgressAccumulator(self.ledger, self.certificates, clock=clock)
        self.dropouts = DropoutProcessor(
            self.ledger,
            default_duration_days=self.config.default_duration_days,
            refund_tiers=self.config.refund_tiers,
            clock=clock,
        )
        self.semester_gate = SemesterGate(
            self.config.semester_prerequisites,
            grading_scale=GradingScale(self.config.grading_scale),
        )

    @property
    def database(self) -> Database:
        return self._db

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    @contextmanager
    def unit_of_work(
        self, student_id: str | None = None, course_id: str | None = None
    ) -> Iterator[UnitOfWork]:
        """Open a transaction, serialized per pair when one is given.

        Raises:
            ConcurrencyConflictError: If the database lock could not be taken.
        """
        if student_id is not None and course_id is not None:
            with self._locks.hold(student_id, course_id):
                uow = yield from self._transaction()
        else:
            uow = yield from self._transaction()
        self._publish(uow)

    def _transaction(self) -> Iterator[UnitOfWork]:
        try:
            with self._db.transaction() as session:
                uow = UnitOfWork(session=session)
                yield uow
        except OperationalError as e:
            if _is_lock_conflict(e):
                logger.warning("Lock conflict, transaction aborted: %s", e.orig)
                raise ConcurrencyConflictError("Database is busy, retry the operation") from e
            raise
        return uow

    def _publish(self, uow: UnitOfWork) -> None:
        if self._publisher is None:
            return
        for event in uow.events:
            try:
                self._publisher.publish(event)
            except Exception:
                # The transaction is already committed
                logger.exception("Failed to publish %s", type(event).__name__)

    # --- Catalog ---

    def upsert_course(
        self,
        course_id: str,
        name: str,
        price: Decimal,
        total_lessons: int = 0,
        total_assignments: int = 0,
        duration_days: int | None = None,
    ) -> Course:
        """Create or replace a course in the catalog mirror."""
        with self.unit_of_work() as uow:
            return self.catalog.upsert(
                uow.session,
                course_id,
                name=name,
                price=price,
                total_lessons=total_lessons,
                total_assignments=total_assignments,
                duration_days=duration_days,
            )

    def get_course(self, course_id: str) -> Course:
        with self.unit_of_work() as uow:
            return self.catalog.get(uow.session, course_id)

    def delete_course(self, course_id: str) -> None:
        """Delete a course and everything that cascades from it."""
        with self.unit_of_work() as uow:
            self.catalog.delete(uow.session, course_id)

    # --- Enrollment Ledger ---

    def enroll(
        self, student_id: str, course_id: str, enrolled_at: datetime | None = None
    ) -> Enrollment:
        """Enroll a student and open their progress record.

        Raises:
            CourseNotFoundError: If the course is not in the catalog.
            AlreadyEnrolledError: If the student is already enrolled.
        """
        with self.unit_of_work(student_id, course_id) as uow:
            enrollment = self.ledger.enroll(uow, student_id, course_id, enrolled_at=enrolled_at)
            self.progress.open_record(uow, student_id, course_id)
            return enrollment

    def lookup_enrollment(self, student_id: str, course_id: str) -> Enrollment:
        """Active enrollment for the pair.

        Raises:
            NotEnrolledError: If the student is not enrolled.
        """
        with self.unit_of_work() as uow:
            return self.ledger.lookup(uow.session, student_id, course_id)

    def list_enrollments(
        self, student_id: str | None = None, course_id: str | None = None
    ) -> list[Enrollment]:
        with self.unit_of_work() as uow:
            return self.ledger.list_enrollments(uow.session, student_id, course_id)

    # --- Progress Accumulator ---

    def record_lesson_completion(
        self, student_id: str, course_id: str, lesson_id: str
    ) -> ProgressResult:
        """Record a completed lesson; may issue a Completion certificate.

        Raises:
            NotEnrolledError: If the student is not enrolled.
        """
        with self.unit_of_work(student_id, course_id) as uow:
            return self.progress.record_lesson_completion(uow, student_id, course_id, lesson_id)

    def record_assignment_submission(
        self, student_id: str, course_id: str, assignment_id: str
    ) -> ProgressResult:
        """Record a submitted assignment; may issue a Completion certificate.

        Raises:
            NotEnrolledError: If the student is not enrolled.
        """
        with self.unit_of_work(student_id, course_id) as uow:
            return self.progress.record_assignment_submission(
                uow, student_id, course_id, assignment_id
            )

    def get_progress(self, student_id: str, course_id: str) -> ProgressRecord:
        """Progress record for a pair.

        Raises:
            NotEnrolledError: If the pair never had an enrollment.
        """
        with self.unit_of_work() as uow:
            record = self.progress.find(uow.session, student_id, course_id)
        if record is None:
            raise NotEnrolledError(
                f"No progress for student '{student_id}' in course '{course_id}'"
            )
        return record

    def list_progress(self, student_id: str) -> list[ProgressRecord]:
        with self.unit_of_work() as uow:
            return self.progress.list_progress(uow.session, student_id)

    # --- Certificate Issuer ---

    def issue_certificate(
        self, student_id: str, course_id: str, certificate_type: CertificateType
    ) -> Certificate:
        """Grant an Excellence or Proficiency certificate."""
        with self.unit_of_work(student_id, course_id) as uow:
            return self.certificates.issue(uow, student_id, course_id, certificate_type)

    def list_certificates(
        self,
        student_id: str | None = None,
        course_id: str | None = None,
        certificate_type: CertificateType | None = None,
    ) -> list[Certificate]:
        with self.unit_of_work() as uow:
            return self.certificates.list_certificates(
                uow.session, student_id, course_id, certificate_type
            )

    # --- Dropout/Refund Processor ---

    def withdraw(self, student_id: str, course_id: str, reason: str | None = None) -> DropoutRecord:
        """Withdraw a student, recording the refund and removing the enrollment.

        Raises:
            NotEnrolledError: If the student is not enrolled.
        """
        with self.unit_of_work(student_id, course_id) as uow:
            return self.dropouts.withdraw(uow, student_id, course_id, reason)

    def list_dropouts(
        self, student_id: str | None = None, course_id: str | None = None
    ) -> list[DropoutRecord]:
        with self.unit_of_work() as uow:
            return self.dropouts.list_dropouts(uow.session, student_id, course_id)

    # --- Semester Gate ---

    def can_advance(
        self,
        course_id: str,
        current_semester: int,
        student_credits: int,
        student_gpa: float | Decimal,
    ) -> bool:
        """See SemesterGate.can_advance."""
        return self.semester_gate.can_advance(
            course_id, current_semester, student_credits, student_gpa
        )

    def evaluate_advancement(
        self, course_id: str, current_semester: int, results: Iterable[SubjectResult]
    ) -> AdvancementDecision:
        """See SemesterGate.evaluate."""
        return self.semester_gate.evaluate(course_id, current_semester, results)
