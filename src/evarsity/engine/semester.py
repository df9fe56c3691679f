"""Semester Gate - credit and GPA policy for semester advancement."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING

from evarsity.config import DEFAULT_GRADING_SCALE
from evarsity.exceptions import NoPolicyDefinedError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from evarsity.config import GradeBand, SemesterPrerequisite

GPA_QUANTUM = Decimal("0.01")


def _to_decimal(value: int | float | Decimal) -> Decimal:
    # str() keeps 5.5 as Decimal("5.5") rather than its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class SubjectResult:
    """A graded subject counted towards a semester."""

    subject: str
    credits: int
    grade_points: Decimal
    grade: str | None = None


@dataclass(frozen=True)
class AdvancementDecision:
    eligible: bool
    earned_credits: int
    gpa: Decimal
    prerequisite: SemesterPrerequisite

    @property
    def next_semester(self) -> int:
        return self.prerequisite.next_semester


class GradingScale:
    """Maps percentages to letter grades and grade points."""

    def __init__(self, bands: Iterable[GradeBand] = DEFAULT_GRADING_SCALE) -> None:
        self.bands = tuple(sorted(bands, key=lambda b: b.min_percentage, reverse=True))

    def grade_for(self, percentage: int | float | Decimal) -> GradeBand:
        """Band whose lower bound is the highest one not above ``percentage``.

        Raises:
            ValueError: If the percentage is outside [0, 100] or below every band.
        """
        value = _to_decimal(percentage)
        if not Decimal(0) <= value <= Decimal(100):
            raise ValueError(f"Percentage must be within [0, 100], got {percentage}")
        for band in self.bands:
            if value >= band.min_percentage:
                return band
        raise ValueError(f"No grade band covers {percentage}")

    def result_for(
        self, subject: str, credits: int, percentage: int | float | Decimal
    ) -> SubjectResult:
        band = self.grade_for(percentage)
        return SubjectResult(
            subject=subject,
            credits=credits,
            grade_points=band.grade_points,
            grade=band.grade,
        )


def compute_gpa(results: Iterable[SubjectResult]) -> Decimal:
    """Credit-weighted mean of grade points, rounded to two decimals.

    Returns 0.00 when no credits were attempted.
    """
    total_credits = 0
    weighted = Decimal(0)
    for result in results:
        if result.credits < 0:
            raise ValueError(f"Credits must be non-negative for '{result.subject}'")
        total_credits += result.credits
        weighted += result.grade_points * result.credits
    if total_credits == 0:
        return Decimal(0).quantize(GPA_QUANTUM)
    return (weighted / total_credits).quantize(GPA_QUANTUM, ROUND_HALF_UP)


def earned_credits(results: Iterable[SubjectResult]) -> int:
    """Credits of passed subjects (grade points above zero)."""
    return sum(r.credits for r in results if r.grade_points > 0)


class SemesterGate:
    """Read-only advancement decisions over a fixed prerequisite table.

    The table is built once from configuration and never mutated; callers
    hold the gate and pass it where decisions are needed.
    """

    def __init__(
        self,
        prerequisites: Iterable[SemesterPrerequisite],
        grading_scale: GradingScale | None = None,
    ) -> None:
        table: dict[tuple[str, int], SemesterPrerequisite] = {}
        for prereq in prerequisites:
            key = (prereq.course_id, prereq.current_semester)
            if key in table:
                raise ValueError(
                    f"Duplicate prerequisite for course '{prereq.course_id}' "
                    f"semester {prereq.current_semester}"
                )
            table[key] = prereq
        self._table = MappingProxyType(table)
        self.grading_scale = grading_scale if grading_scale is not None else GradingScale()

    def prerequisite_for(self, course_id: str, current_semester: int) -> SemesterPrerequisite:
        """Policy row for a course and semester.

        Raises:
            NoPolicyDefinedError: If no row matches.
        """
        prereq = self._table.get((course_id, current_semester))
        if prereq is None:
            raise NoPolicyDefinedError(
                f"No advancement policy for course '{course_id}' semester {current_semester}"
            )
        return prereq

    def can_advance(
        self,
        course_id: str,
        current_semester: int,
        student_credits: int,
        student_gpa: int | float | Decimal,
    ) -> bool:
        """True iff the student meets both minimum credits and minimum GPA.

        Raises:
            NoPolicyDefinedError: If no row matches.
        """
        prereq = self.prerequisite_for(course_id, current_semester)
        return (
            student_credits >= prereq.min_credits_required
            and _to_decimal(student_gpa) >= prereq.min_gpa_required
        )

    def evaluate(
        self,
        course_id: str,
        current_semester: int,
        results: Iterable[SubjectResult],
    ) -> AdvancementDecision:
        """Derive credits and GPA from graded subjects, then decide.

        Raises:
            NoPolicyDefinedError: If no row matches.
        """
        results = list(results)
        prereq = self.prerequisite_for(course_id, current_semester)
        credits = earned_credits(results)
        gpa = compute_gpa(results)
        return AdvancementDecision(
            eligible=self.can_advance(course_id, current_semester, credits, gpa),
            earned_credits=credits,
            gpa=gpa,
            prerequisite=prereq,
        )

    def policies(self, course_id: str | None = None) -> list[SemesterPrerequisite]:
        """Configured rows, ordered by course then semester."""
        rows = [
            p for p in self._table.values() if course_id is None or p.course_id == course_id
        ]
        return sorted(rows, key=lambda p: (p.course_id, p.current_semester))
