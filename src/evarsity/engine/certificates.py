"""Certificate Issuer - completion certificates on threshold crossing."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select

from evarsity.engine.events import CertificateIssued
from evarsity.engine.formulas import certificate_url, to_storage, utcnow
from evarsity.exceptions import CertificateExistsError, CourseNotFoundError
from evarsity.store.models import Certificate, CertificateType, Course

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sqlalchemy.orm import Session

    from evarsity.engine.events import ProgressChanged, UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_THRESHOLD = Decimal("90.0")


class CertificateIssuer:
    """Sole writer of Certificate rows.

    ``Completion`` certificates come only from :meth:`on_progress_changed`,
    and only when the percentage crosses the threshold from below. An
    existing certificate turns the crossing into a no-op, which keeps
    issuance exactly-once per pair. ``Excellence`` and ``Proficiency`` are
    granted through :meth:`issue` by an external decision.
    """

    def __init__(
        self,
        threshold: Decimal = DEFAULT_COMPLETION_THRESHOLD,
        url_prefix: str = "/certs",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.threshold = threshold
        self.url_prefix = url_prefix
        self._clock = clock

    def crosses_threshold(self, old_percentage: Decimal, new_percentage: Decimal) -> bool:
        """True when a change moves from below the threshold to at or above it."""
        return old_percentage < self.threshold <= new_percentage

    def on_progress_changed(self, uow: UnitOfWork, change: ProgressChanged) -> Certificate | None:
        """Issue a Completion certificate if ``change`` is a first crossing.

        Returns:
            The new certificate, or None when nothing was issued.
        """
        if not self.crosses_threshold(change.old_percentage, change.new_percentage):
            return None

        existing = self.find(
            uow.session, change.student_id, change.course_id, CertificateType.COMPLETION
        )
        if existing is not None:
            logger.info(
                "Completion certificate already held by %s for %s, not reissuing",
                change.student_id,
                change.course_id,
            )
            return None

        return self._insert(uow, change.student_id, change.course_id, CertificateType.COMPLETION)

    def issue(
        self,
        uow: UnitOfWork,
        student_id: str,
        course_id: str,
        certificate_type: CertificateType,
    ) -> Certificate:
        """Grant an Excellence or Proficiency certificate.

        Raises:
            ValueError: If asked for a Completion certificate.
            CourseNotFoundError: If the course is not in the catalog.
            CertificateExistsError: If the student already holds this type.
        """
        certificate_type = CertificateType(certificate_type)
        if certificate_type is CertificateType.COMPLETION:
            raise ValueError("Completion certificates are issued only on course completion")

        if uow.session.get(Course, course_id) is None:
            raise CourseNotFoundError(f"Course with id '{course_id}' not found")

        if self.find(uow.session, student_id, course_id, certificate_type) is not None:
            raise CertificateExistsError(
                f"Student '{student_id}' already holds a {certificate_type.value} "
                f"certificate for course '{course_id}'"
            )

        return self._insert(uow, student_id, course_id, certificate_type)

    def find(
        self,
        session: Session,
        student_id: str,
        course_id: str,
        certificate_type: CertificateType,
    ) -> Certificate | None:
        stmt = select(Certificate).where(
            Certificate.student_id == student_id,
            Certificate.course_id == course_id,
            Certificate.certificate_type == certificate_type.value,
        )
        return session.execute(stmt).scalar_one_or_none()

    def list_certificates(
        self,
        session: Session,
        student_id: str | None = None,
        course_id: str | None = None,
        certificate_type: CertificateType | None = None,
    ) -> list[Certificate]:
        """List certificates, oldest first, optionally filtered."""
        stmt = select(Certificate)
        if student_id is not None:
            stmt = stmt.where(Certificate.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(Certificate.course_id == course_id)
        if certificate_type is not None:
            stmt = stmt.where(Certificate.certificate_type == certificate_type.value)
        stmt = stmt.order_by(Certificate.issued_at, Certificate.id)
        return list(session.execute(stmt).scalars().all())

    def _insert(
        self,
        uow: UnitOfWork,
        student_id: str,
        course_id: str,
        certificate_type: CertificateType,
    ) -> Certificate:
        issued_at = self._clock()
        certificate = Certificate(
            student_id=student_id,
            course_id=course_id,
            certificate_type=certificate_type.value,
            issued_at=to_storage(issued_at),
            url=certificate_url(
                self.url_prefix, student_id, course_id, certificate_type.value, issued_at
            ),
        )
        uow.session.add(certificate)
        uow.session.flush()

        uow.emit(
            CertificateIssued(
                certificate_id=certificate.id,
                student_id=student_id,
                course_id=course_id,
                certificate_type=certificate_type.value,
                url=certificate.url,
                issued_at=certificate.issued_at,
            )
        )
        logger.info(
            "Issued %s certificate %s to %s for %s",
            certificate_type.value,
            certificate.id,
            student_id,
            course_id,
        )
        return certificate
