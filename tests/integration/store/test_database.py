"""Integration tests for the file-backed database."""

import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import inspect, select, text
from sqlalchemy.exc import IntegrityError, OperationalError

from evarsity.store.database import Database
from evarsity.store.models import Certificate, Course, Enrollment, ProgressRecord


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    # Cleanup
    Path(path).unlink(missing_ok=True)
    Path(f"{path}-wal").unlink(missing_ok=True)
    Path(f"{path}-shm").unlink(missing_ok=True)


@pytest.fixture
def database(temp_db_path: str):
    """Create a database instance with tables."""
    db = Database(temp_db_path)
    db.create_tables()
    yield db
    db.close()


def _add_course(db: Database, course_id: str = "C-101") -> None:
    with db.transaction() as session:
        session.add(Course(id=course_id, name="Course", price=Decimal("100"), total_lessons=5))


@pytest.mark.integration
class TestDatabaseSetup:
    """Tests for database setup."""

    def test_creates_file_and_tables(self, temp_db_path: str) -> None:
        db = Database(temp_db_path)
        db.create_tables()

        assert Path(temp_db_path).exists()
        assert "dropout_records" in inspect(db.engine).get_table_names()
        db.close()

    def test_create_tables_is_idempotent(self, database: Database) -> None:
        database.create_tables()

        assert len(inspect(database.engine).get_table_names()) == 7

    def test_wal_mode(self, database: Database) -> None:
        assert database.is_wal_mode()

    def test_certificate_url_column_unbounded(self, database: Database) -> None:
        columns = {c["name"]: c for c in inspect(database.engine).get_columns("certificates")}

        assert getattr(columns["url"]["type"], "length", None) is None

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = Database(str(tmp_path / "nested" / "dir" / "evarsity.db"))
        db.create_tables()

        assert (tmp_path / "nested" / "dir" / "evarsity.db").exists()
        db.close()


@pytest.mark.integration
class TestConstraints:
    """Database-level guarantees."""

    def test_pair_unique_enrollment(self, database: Database) -> None:
        _add_course(database)
        with database.transaction() as session:
            session.add(Enrollment("S1", "C-101", datetime(2025, 1, 1)))

        with pytest.raises(IntegrityError), database.transaction() as session:
            session.add(Enrollment("S1", "C-101", datetime(2025, 1, 2)))

    def test_one_certificate_per_type(self, database: Database) -> None:
        _add_course(database)

        def add() -> None:
            with database.transaction() as session:
                session.add(
                    Certificate("S1", "C-101", "Completion", datetime(2025, 1, 1), "/certs/a.pdf")
                )

        add()
        with pytest.raises(IntegrityError):
            add()

    def test_percentage_check_constraint(self, database: Database) -> None:
        _add_course(database)

        with pytest.raises(IntegrityError), database.transaction() as session:
            session.add(
                ProgressRecord(
                    "S1", "C-101", datetime(2025, 1, 1), percentage=Decimal("100.01")
                )
            )

    def test_enrollment_requires_course(self, database: Database) -> None:
        with pytest.raises(IntegrityError), database.transaction() as session:
            session.add(Enrollment("S1", "missing", datetime(2025, 1, 1)))

    def test_course_delete_cascades(self, database: Database) -> None:
        _add_course(database)
        with database.transaction() as session:
            session.add(Enrollment("S1", "C-101", datetime(2025, 1, 1)))

        with database.transaction() as session:
            session.execute(text("DELETE FROM courses WHERE id = 'C-101'"))

        with database.transaction() as session:
            assert session.execute(select(Enrollment)).scalars().all() == []


@pytest.mark.integration
class TestWriterLocking:
    """Transactions take the write lock when they begin."""

    def test_second_writer_times_out(self, temp_db_path: str) -> None:
        first = Database(temp_db_path)
        first.create_tables()
        second = Database(temp_db_path, busy_timeout=0.1)
        second.create_tables()

        with first.transaction() as session:
            session.execute(text("SELECT 1"))

            with pytest.raises(OperationalError, match="locked"), second.transaction() as other:
                other.execute(text("SELECT 1"))

        first.close()
        second.close()
