"""Engine - Enrollment, progress, certificates, dropouts and semester policy."""

from evarsity.engine.engine import AcademicEngine
from evarsity.engine.events import (
    CertificateIssued,
    DomainEvent,
    EventPublisher,
    ProgressChanged,
    StudentEnrolled,
    StudentWithdrawn,
    UnitOfWork,
)
from evarsity.engine.progress import ProgressResult
from evarsity.engine.semester import (
    AdvancementDecision,
    GradingScale,
    SemesterGate,
    SubjectResult,
    compute_gpa,
)

__all__ = [
    "AcademicEngine",
    "AdvancementDecision",
    "CertificateIssued",
    "DomainEvent",
    "EventPublisher",
    "GradingScale",
    "ProgressChanged",
    "ProgressResult",
    "SemesterGate",
    "StudentEnrolled",
    "StudentWithdrawn",
    "SubjectResult",
    "UnitOfWork",
    "compute_gpa",
]
