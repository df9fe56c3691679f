"""CLI entry point for the evarsity engine."""

from __future__ import annotations

import os
import sys
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path

import click

from evarsity import __version__
from evarsity.config import ConfigError, EngineConfig, config_from_env, find_config, load_config
from evarsity.engine import AcademicEngine
from evarsity.exceptions import EngineError, NoPolicyDefinedError, NotEnrolledError
from evarsity.logging import setup_logging

config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to evarsity.yaml (auto-detected if not specified)",
)
db_option = click.option(
    "--db",
    "db_path",
    type=str,
    default=None,
    help="Database path (overrides the configured one)",
)


def resolve_config(config_path: Path | None, db_path: str | None = None) -> EngineConfig:
    """Load configuration from an explicit file, the environment or the nearest evarsity.yaml.

    Falls back to defaults when none is found.
    """
    if config_path is not None:
        config = load_config(config_path)
    elif os.environ.get("EVARSITY_CONFIG"):
        config = config_from_env()
    else:
        try:
            found = find_config()
        except ConfigError:
            found = None
        config = load_config(found) if found is not None else config_from_env()
    if db_path:
        config = replace(config, database_path=db_path)
    return config


def _parse_gpa(value: str) -> Decimal:
    try:
        gpa = Decimal(value)
    except InvalidOperation as e:
        raise click.BadParameter(f"'{value}' is not a number", param_hint="--gpa") from e
    if not gpa.is_finite():
        raise click.BadParameter(f"'{value}' is not a finite number", param_hint="--gpa")
    return gpa


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """evarsity - enrollment, progress, certificates, refunds and semester policy."""


@main.command()
@config_option
@db_option
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port")
@click.option("--log-level", default=None, help="Log level (default: EVARSITY_LOG_LEVEL or INFO)")
def serve(
    config_path: Path | None, db_path: str | None, host: str, port: int, log_level: str | None
) -> None:
    """Run the REST API server."""
    import uvicorn  # noqa: PLC0415

    from evarsity.api.app import create_app  # noqa: PLC0415

    try:
        config = resolve_config(config_path, db_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_logging(config.logging, level=log_level)
    click.echo(f"Serving evarsity on http://{host}:{port} (database: {config.database_path})")
    uvicorn.run(create_app(config), host=host, port=port, log_level="info")


@main.command("init-db")
@config_option
@db_option
def init_db(config_path: Path | None, db_path: str | None) -> None:
    """Create the database schema."""
    try:
        config = resolve_config(config_path, db_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    engine = AcademicEngine(config=config)
    try:
        mode = "WAL" if engine.database.is_wal_mode() else "rollback journal"
    finally:
        engine.close()
    click.echo(f"Database ready at {config.database_path} ({mode})")


@main.command("can-advance")
@config_option
@click.argument("course_id")
@click.argument("semester", type=int)
@click.option("--credits", "credits_", type=int, required=True, help="Credits earned")
@click.option("--gpa", required=True, help="Grade point average")
def can_advance(
    config_path: Path | None, course_id: str, semester: int, credits_: int, gpa: str
) -> None:
    """Check whether a student may advance past SEMESTER of COURSE_ID.

    Exits with status 0 when eligible and 2 when not.
    """
    student_gpa = _parse_gpa(gpa)
    try:
        config = resolve_config(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    # Policy lookups are pure; no database is opened
    from evarsity.engine.semester import GradingScale, SemesterGate  # noqa: PLC0415

    gate = SemesterGate(config.semester_prerequisites, GradingScale(config.grading_scale))
    try:
        prereq = gate.prerequisite_for(course_id, semester)
        eligible = gate.can_advance(course_id, semester, credits_, student_gpa)
    except NoPolicyDefinedError as e:
        click.echo(f"Policy error: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Requires {prereq.min_credits_required} credits and GPA {prereq.min_gpa_required}; "
        f"student has {credits_} credits and GPA {student_gpa}"
    )
    if eligible:
        click.echo(f"Eligible for semester {prereq.next_semester}")
    else:
        click.echo(f"Not eligible for semester {prereq.next_semester}")
        sys.exit(2)


@main.command()
@config_option
@db_option
@click.argument("student_id")
@click.argument("course_id")
@click.option("--reason", default=None, help="Reason for withdrawal")
def withdraw(
    config_path: Path | None,
    db_path: str | None,
    student_id: str,
    course_id: str,
    reason: str | None,
) -> None:
    """Withdraw STUDENT_ID from COURSE_ID and print the refund owed."""
    try:
        config = resolve_config(config_path, db_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    engine = AcademicEngine(config=config)
    try:
        record = engine.withdraw(student_id, course_id, reason=reason)
    except NotEnrolledError as e:
        click.echo(f"Not enrolled: {e}", err=True)
        sys.exit(1)
    except EngineError as e:
        click.echo(f"Withdrawal failed: {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    click.echo(f"Withdrew {student_id} from {course_id}")
    click.echo(
        f"  Attended {record.completed_duration} of {record.total_course_duration} days"
    )
    click.echo(f"  Refund: {record.refund_percentage}% = {record.refund_amount}")


if __name__ == "__main__":
    main()
