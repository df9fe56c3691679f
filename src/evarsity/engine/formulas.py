"""Pure functions behind the engine's derived values.

Each function is deterministic in its inputs and validates its result, so a
value outside its valid range raises before it can reach storage.
"""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING
from urllib.parse import quote

from evarsity.config import DEFAULT_REFUND_TIERS
from evarsity.exceptions import InvariantViolationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from evarsity.config import RefundTier

CENT = Decimal("0.01")
HUNDRED = Decimal(100)
ZERO = Decimal(0)

# Longest quoted id kept verbatim in a certificate file name
MAX_URL_SEGMENT = 48


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_storage(value: datetime) -> datetime:
    """Naive UTC datetime, the form timestamps are stored in."""
    return as_utc(value).replace(tzinfo=None)


def completion_percentage(
    completed_lessons: int,
    submitted_assignments: int,
    total_lessons: int,
    total_assignments: int,
) -> Decimal:
    """Completion percentage of a course, rounded to two decimals.

    Zero when the course has no content. Counts above the totals (a catalog
    that shrank after the work was done) clamp to 100.

    Raises:
        InvariantViolationError: If any count is negative.
    """
    if min(completed_lessons, submitted_assignments, total_lessons, total_assignments) < 0:
        raise InvariantViolationError(
            "Progress counts must be non-negative: "
            f"lessons {completed_lessons}/{total_lessons}, "
            f"assignments {submitted_assignments}/{total_assignments}"
        )

    total = total_lessons + total_assignments
    if total == 0:
        return ZERO.quantize(CENT)

    done = completed_lessons + submitted_assignments
    percentage = (Decimal(done) * HUNDRED / Decimal(total)).quantize(CENT, ROUND_HALF_UP)
    percentage = min(percentage, HUNDRED.quantize(CENT))
    return ensure_percentage(percentage, "completion percentage")


def ensure_percentage(value: Decimal, what: str) -> Decimal:
    """Return ``value`` if it lies in [0, 100], else raise InvariantViolationError."""
    if not ZERO <= value <= HUNDRED:
        raise InvariantViolationError(f"{what} out of range: {value}")
    return value


def completed_days(enrolled_at: datetime, dropout_at: datetime, total_days: int) -> int:
    """Whole days between enrollment and dropout, clamped to [0, total_days]."""
    if total_days <= 0:
        raise InvariantViolationError(f"Course duration must be positive, got {total_days}")
    elapsed = (as_utc(dropout_at) - as_utc(enrolled_at)).days
    return max(0, min(elapsed, total_days))


def refund_percentage(
    completed_duration: int,
    total_duration: int,
    tiers: Sequence[RefundTier] = DEFAULT_REFUND_TIERS,
) -> Decimal:
    """Refund percentage for the elapsed share of the course.

    Walks the tiers in order and returns the first whose ``max_ratio`` covers
    ``completed_duration / total_duration``; past the last tier nothing is
    refunded. The comparison is done as ``completed <= total * max_ratio`` so
    tier boundaries are exact.
    """
    if total_duration <= 0:
        raise InvariantViolationError(f"Course duration must be positive, got {total_duration}")
    if not 0 <= completed_duration <= total_duration:
        raise InvariantViolationError(
            f"Completed duration {completed_duration} outside [0, {total_duration}]"
        )

    for tier in tiers:
        if Decimal(completed_duration) <= Decimal(total_duration) * tier.max_ratio:
            return ensure_percentage(tier.percentage.quantize(CENT), "refund percentage")
    return ZERO.quantize(CENT)


def refund_amount(course_price: Decimal, percentage: Decimal) -> Decimal:
    """Refund owed on ``course_price`` at ``percentage``, rounded to cents."""
    if course_price < ZERO:
        raise InvariantViolationError(f"Course price must be non-negative, got {course_price}")
    ensure_percentage(percentage, "refund percentage")
    amount = (course_price * percentage / HUNDRED).quantize(CENT, ROUND_HALF_UP)
    if not ZERO <= amount <= course_price:
        raise InvariantViolationError(f"Refund amount {amount} exceeds price {course_price}")
    return amount


def certificate_url(
    prefix: str,
    student_id: str,
    course_id: str,
    certificate_type: str,
    issued_at: datetime,
) -> str:
    """Reference for a certificate document.

    Deterministic in its inputs. The digest suffix keeps two references
    distinct even when ids contain separator characters. Ids whose quoted
    form exceeds MAX_URL_SEGMENT characters appear as a hash, so the file
    name stays short.
    """
    issued_at = as_utc(issued_at)
    digest = hashlib.sha256(
        "\x1f".join(
            (student_id, course_id, certificate_type, issued_at.isoformat())
        ).encode("utf-8")
    ).hexdigest()[:12]
    stamp = issued_at.strftime("%Y%m%dT%H%M%S%fZ")
    return (
        f"{prefix.rstrip('/')}/{_url_segment(student_id)}_{_url_segment(course_id)}"
        f"_{stamp}_{digest}.pdf"
    )


def _url_segment(value: str) -> str:
    quoted = quote(value, safe="")
    if len(quoted) <= MAX_URL_SEGMENT:
        return quoted
    return "h" + hashlib.sha256(value.encode("utf-8")).hexdigest()[:24]
