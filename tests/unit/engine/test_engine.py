"""Unit tests for AcademicEngine units of work and event publishing."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from evarsity.engine import (
    AcademicEngine,
    CertificateIssued,
    EventPublisher,
    ProgressChanged,
    StudentEnrolled,
    StudentWithdrawn,
)
from evarsity.engine.certificates import CertificateIssuer
from evarsity.exceptions import ConcurrencyConflictError, NoPolicyDefinedError


class RecordingPublisher:
    """Collects published events."""

    def __init__(self) -> None:
        self.events: list = []

    def publish(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def published_engine(config, clock, publisher):
    e = AcademicEngine(config=config, publisher=publisher, clock=clock)
    e.upsert_course(
        "C-101", name="Data Structures", price=Decimal("1000"), total_lessons=10, duration_days=180
    )
    yield e
    e.close()


@pytest.mark.unit
class TestEventPublishing:
    """Events are published after commit, and only then."""

    def test_publisher_protocol(self, publisher: RecordingPublisher) -> None:
        assert isinstance(publisher, EventPublisher)

    def test_enroll_publishes_student_enrolled(self, published_engine, publisher) -> None:
        published_engine.enroll("S1", "C-101")

        (event,) = publisher.events
        assert isinstance(event, StudentEnrolled)
        assert event.student_id == "S1"

    def test_crossing_publishes_progress_then_certificate(
        self, published_engine, publisher
    ) -> None:
        published_engine.enroll("S1", "C-101")
        for i in range(9):
            published_engine.record_lesson_completion("S1", "C-101", f"L{i}")

        last_two = publisher.events[-2:]
        assert isinstance(last_two[0], ProgressChanged)
        assert last_two[0].old_percentage == Decimal("80.00")
        assert last_two[0].new_percentage == Decimal("90.00")
        assert isinstance(last_two[1], CertificateIssued)
        assert last_two[1].certificate_type == "Completion"

    def test_repeat_publishes_nothing(self, published_engine, publisher) -> None:
        published_engine.enroll("S1", "C-101")
        published_engine.record_lesson_completion("S1", "C-101", "L1")
        count = len(publisher.events)

        published_engine.record_lesson_completion("S1", "C-101", "L1")

        assert len(publisher.events) == count

    def test_reenrollment_into_changed_course_publishes_progress(
        self, published_engine, publisher
    ) -> None:
        published_engine.enroll("S1", "C-101")
        for i in range(8):
            published_engine.record_lesson_completion("S1", "C-101", f"L{i}")
        published_engine.withdraw("S1", "C-101")
        published_engine.upsert_course(
            "C-101", name="Data Structures", price=Decimal("1000"), total_lessons=8
        )
        publisher.events.clear()

        published_engine.enroll("S1", "C-101")

        enrolled, changed, issued = publisher.events
        assert isinstance(enrolled, StudentEnrolled)
        assert isinstance(changed, ProgressChanged)
        assert (changed.old_percentage, changed.new_percentage) == (
            Decimal("80.00"),
            Decimal("100.00"),
        )
        assert isinstance(issued, CertificateIssued)

    def test_plain_reenrollment_publishes_only_enrollment(
        self, published_engine, publisher
    ) -> None:
        published_engine.enroll("S1", "C-101")
        published_engine.record_lesson_completion("S1", "C-101", "L0")
        published_engine.withdraw("S1", "C-101")
        publisher.events.clear()

        published_engine.enroll("S1", "C-101")

        (event,) = publisher.events
        assert isinstance(event, StudentEnrolled)

    def test_withdraw_publishes_refund(self, published_engine, publisher, clock) -> None:
        published_engine.enroll("S1", "C-101")
        clock.advance(days=40)

        published_engine.withdraw("S1", "C-101")

        event = publisher.events[-1]
        assert isinstance(event, StudentWithdrawn)
        assert event.refund_amount == Decimal("900.00")

    def test_rolled_back_work_publishes_nothing(self, published_engine, publisher) -> None:
        published_engine.enroll("S1", "C-101")
        for i in range(8):
            published_engine.record_lesson_completion("S1", "C-101", f"L{i}")
        count = len(publisher.events)

        with (
            patch.object(CertificateIssuer, "_insert", side_effect=RuntimeError("disk full")),
            pytest.raises(RuntimeError),
        ):
            published_engine.record_lesson_completion("S1", "C-101", "L8")

        assert len(publisher.events) == count
        assert published_engine.get_progress("S1", "C-101").percentage == Decimal("80.00")
        assert published_engine.list_certificates() == []

    def test_publisher_failure_does_not_undo_commit(self, config, clock) -> None:
        failing = MagicMock()
        failing.publish.side_effect = RuntimeError("subscriber gone")
        engine = AcademicEngine(config=config, publisher=failing, clock=clock)
        engine.upsert_course("C", name="C", price=Decimal("1"), total_lessons=1)

        engine.enroll("S1", "C")

        assert engine.lookup_enrollment("S1", "C").student_id == "S1"
        failing.publish.assert_called_once()
        engine.close()


@pytest.mark.unit
class TestLockConflicts:
    """Lock errors surface as ConcurrencyConflictError."""

    def test_database_locked_maps_to_conflict(self, engine: AcademicEngine, course) -> None:
        locked = OperationalError("INSERT", {}, Exception("database is locked"))

        with (
            patch.object(engine.ledger, "enroll", side_effect=locked),
            pytest.raises(ConcurrencyConflictError),
        ):
            engine.enroll("S1", course.id)

    def test_other_operational_errors_propagate(self, engine: AcademicEngine, course) -> None:
        broken = OperationalError("INSERT", {}, Exception("disk I/O error"))

        with (
            patch.object(engine.ledger, "enroll", side_effect=broken),
            pytest.raises(OperationalError),
        ):
            engine.enroll("S1", course.id)


@pytest.mark.unit
class TestSemesterDecisions:
    """Semester gate through the engine."""

    def test_can_advance(self, engine: AcademicEngine) -> None:
        assert engine.can_advance("BTECH-CSE", 1, 20, 6.0) is True
        assert engine.can_advance("BTECH-CSE", 2, 20, 6.0) is False

    def test_no_policy(self, engine: AcademicEngine) -> None:
        with pytest.raises(NoPolicyDefinedError):
            engine.can_advance("BTECH-CSE", 3, 40, 9.0)

    def test_evaluate_advancement(self, engine: AcademicEngine) -> None:
        scale = engine.semester_gate.grading_scale
        results = [scale.result_for("Maths", 10, 92), scale.result_for("Physics", 10, 61)]

        decision = engine.evaluate_advancement("BTECH-CSE", 1, results)

        assert decision.eligible is True
        assert decision.earned_credits == 20
        assert decision.gpa == Decimal("8.50")
