"""Shared pytest fixtures and configuration."""

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from evarsity.config import EngineConfig, SemesterPrerequisite
from evarsity.engine import AcademicEngine


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


class FakeClock:
    """Settable clock handed to the engine in place of utcnow."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start if start is not None else datetime(2025, 1, 6, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# Shared fixtures


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting on 2025-01-06 09:00 UTC."""
    return FakeClock()


@pytest.fixture
def config() -> EngineConfig:
    """In-memory configuration with two semester policies."""
    return EngineConfig(
        database_path=":memory:",
        semester_prerequisites=(
            SemesterPrerequisite(
                course_id="BTECH-CSE",
                current_semester=1,
                next_semester=2,
                min_credits_required=18,
                min_gpa_required=Decimal("5.5"),
            ),
            SemesterPrerequisite(
                course_id="BTECH-CSE",
                current_semester=2,
                next_semester=3,
                min_credits_required=22,
                min_gpa_required=Decimal("5.5"),
            ),
        ),
    )


@pytest.fixture
def engine(config: EngineConfig, clock: FakeClock) -> Iterator[AcademicEngine]:
    """Engine over an in-memory database, driven by the fake clock."""
    e = AcademicEngine(config=config, clock=clock)
    yield e
    e.close()


@pytest.fixture
def course(engine: AcademicEngine):
    """Course with 10 lessons, no assignments, price 1000.00, 180 days."""
    return engine.upsert_course(
        "C-101",
        name="Data Structures",
        price=Decimal("1000.00"),
        total_lessons=10,
        total_assignments=0,
        duration_days=180,
    )
