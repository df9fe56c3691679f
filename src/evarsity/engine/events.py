"""Domain events raised inside engine transactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from sqlalchemy.orm import Session


@dataclass(frozen=True)
class StudentEnrolled:
    student_id: str
    course_id: str
    enrolled_at: datetime


@dataclass(frozen=True)
class ProgressChanged:
    """Completion percentage of a pair moved from ``old_percentage`` to ``new_percentage``."""

    student_id: str
    course_id: str
    old_percentage: Decimal
    new_percentage: Decimal


@dataclass(frozen=True)
class CertificateIssued:
    certificate_id: str
    student_id: str
    course_id: str
    certificate_type: str
    url: str
    issued_at: datetime


@dataclass(frozen=True)
class StudentWithdrawn:
    dropout_id: str
    student_id: str
    course_id: str
    refund_percentage: Decimal
    refund_amount: Decimal


DomainEvent = StudentEnrolled | ProgressChanged | CertificateIssued | StudentWithdrawn


@runtime_checkable
class EventPublisher(Protocol):
    """Receives domain events once their transaction has committed."""

    def publish(self, event: DomainEvent) -> None:
        """Deliver one event."""
        ...


@dataclass
class UnitOfWork:
    """An open transaction plus the events it has raised so far.

    Events are held back until the transaction commits; a rolled-back unit
    of work publishes nothing.
    """

    session: Session
    events: list[DomainEvent] = field(default_factory=list)

    def emit(self, event: DomainEvent) -> None:
        self.events.append(event)
