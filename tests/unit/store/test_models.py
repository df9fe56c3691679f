"""Unit tests for storage models."""

from datetime import datetime
from decimal import Decimal

import pytest

from evarsity.store.models import (
    Certificate,
    CertificateType,
    Course,
    DropoutRecord,
    Enrollment,
    ProgressRecord,
)


@pytest.mark.unit
class TestCertificateTypeEnum:
    """Tests for CertificateType enum."""

    def test_values(self) -> None:
        assert [t.value for t in CertificateType] == ["Completion", "Excellence", "Proficiency"]

    def test_is_string_enum(self) -> None:
        assert CertificateType.EXCELLENCE == "Excellence"


@pytest.mark.unit
class TestModelDefaults:
    """Constructor defaults."""

    def test_course_timestamps_set(self) -> None:
        course = Course(id="C", name="Course", price=Decimal("10"))

        assert course.created_at is not None
        assert course.updated_at == course.created_at
        assert course.total_lessons == 0
        assert course.duration_days is None

    def test_enrollment_gets_uuid(self) -> None:
        first = Enrollment(student_id="S", course_id="C", enrolled_at=datetime(2025, 1, 1))
        second = Enrollment(student_id="S", course_id="C", enrolled_at=datetime(2025, 1, 1))

        assert first.id != second.id

    def test_progress_starts_at_zero(self) -> None:
        record = ProgressRecord(student_id="S", course_id="C", last_updated=datetime(2025, 1, 1))

        assert record.percentage == Decimal("0")
        assert record.completed_lessons == 0
        assert record.submitted_assignments == 0

    def test_certificate_type_property(self) -> None:
        certificate = Certificate(
            student_id="S",
            course_id="C",
            certificate_type="Proficiency",
            issued_at=datetime(2025, 1, 1),
            url="/certs/x.pdf",
        )

        assert certificate.type is CertificateType.PROFICIENCY

    def test_dropout_repr(self) -> None:
        record = DropoutRecord(
            student_id="S",
            course_id="C",
            enrollment_date=datetime(2025, 1, 1),
            dropout_date=datetime(2025, 2, 10),
            total_course_duration=180,
            completed_duration=40,
            course_price=Decimal("1000"),
            refund_percentage=Decimal("90"),
            refund_amount=Decimal("900"),
        )

        assert "refund_percentage=Decimal('90')" in repr(record)
        assert record.reason is None
