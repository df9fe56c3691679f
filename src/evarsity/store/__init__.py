"""Store - Persistent storage for enrollments, progress, certificates and dropouts."""

from evarsity.store.database import Database
from evarsity.store.models import (
    AssignmentSubmission,
    Certificate,
    CertificateType,
    Course,
    DropoutRecord,
    Enrollment,
    LessonCompletion,
    ProgressRecord,
)

__all__ = [
    "AssignmentSubmission",
    "Certificate",
    "CertificateType",
    "Course",
    "Database",
    "DropoutRecord",
    "Enrollment",
    "LessonCompletion",
    "ProgressRecord",
]
