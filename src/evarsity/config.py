"""Configuration loading for the academic lifecycle engine.

Policy data (refund tiers, semester prerequisites, grading scale) is static
configuration: it is loaded once from ``evarsity.yaml`` into frozen dataclasses
and handed to the engine explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "evarsity.yaml"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class RefundTier:
    """Refund granted when the elapsed ratio is at most ``max_ratio``."""

    max_ratio: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class SemesterPrerequisite:
    """Requirements for moving from ``current_semester`` to ``next_semester``."""

    course_id: str
    current_semester: int
    next_semester: int
    min_credits_required: int
    min_gpa_required: Decimal


@dataclass(frozen=True)
class LogSettings:
    """Where the engine writes its log and how much of it."""

    directory: str = "logs"
    level: str = "INFO"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    redact: bool = True


@dataclass(frozen=True)
class GradeBand:
    """One row of the grading scale."""

    min_percentage: Decimal
    max_percentage: Decimal
    grade: str
    grade_points: Decimal
    remarks: str


DEFAULT_REFUND_TIERS: tuple[RefundTier, ...] = (
    RefundTier(Decimal("0.25"), Decimal("90.00")),
    RefundTier(Decimal("0.50"), Decimal("50.00")),
    RefundTier(Decimal("0.75"), Decimal("25.00")),
)

DEFAULT_GRADING_SCALE: tuple[GradeBand, ...] = (
    GradeBand(Decimal("90.00"), Decimal("100.00"), "A+", Decimal("10.0"), "Outstanding"),
    GradeBand(Decimal("80.00"), Decimal("89.99"), "A", Decimal("9.0"), "Excellent"),
    GradeBand(Decimal("70.00"), Decimal("79.99"), "B+", Decimal("8.0"), "Very Good"),
    GradeBand(Decimal("60.00"), Decimal("69.99"), "B", Decimal("7.0"), "Good"),
    GradeBand(Decimal("50.00"), Decimal("59.99"), "C+", Decimal("6.0"), "Average"),
    GradeBand(Decimal("40.00"), Decimal("49.99"), "C", Decimal("5.0"), "Below Average"),
    GradeBand(Decimal("35.00"), Decimal("39.99"), "D", Decimal("4.0"), "Pass"),
    GradeBand(Decimal("0.00"), Decimal("34.99"), "F", Decimal("0.0"), "Fail"),
)


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from e


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    return value


def _rows(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    rows = data.get(key) or []
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise ConfigError(f"'{key}' must be a list of mappings")
    return rows


def _missing(row: dict[str, Any], required: tuple[str, ...], where: str) -> None:
    missing = [f for f in required if f not in row]
    if missing:
        raise ConfigError(f"{where}: missing required fields: {', '.join(missing)}")


@dataclass(frozen=True)
class EngineConfig:
    """Engine configuration.

    Every field has a default, so an empty YAML file yields a working engine
    with the stock refund tiers and grading scale and no semester policy.
    """

    database_path: str = "evarsity.db"
    completion_threshold: Decimal = Decimal("90.0")
    certificate_url_prefix: str = "/certs"
    default_duration_days: int = 180
    refund_tiers: tuple[RefundTier, ...] = DEFAULT_REFUND_TIERS
    semester_prerequisites: tuple[SemesterPrerequisite, ...] = ()
    grading_scale: tuple[GradeBand, ...] = DEFAULT_GRADING_SCALE
    logging: LogSettings = field(default_factory=LogSettings)
    root_path: Path = field(default_factory=Path)

    def __post_init__(self) -> None:
        if not Decimal(0) < self.completion_threshold <= Decimal(100):
            raise ConfigError("completion threshold must be in (0, 100]")
        if self.default_duration_days <= 0:
            raise ConfigError("default_duration_days must be positive")

        previous = Decimal(0)
        for tier in self.refund_tiers:
            if not previous < tier.max_ratio <= Decimal(1):
                raise ConfigError("refund tiers must have increasing max_ratio within (0, 1]")
            if not Decimal(0) <= tier.percentage <= Decimal(100):
                raise ConfigError("refund tier percentage must be within [0, 100]")
            previous = tier.max_ratio

        seen: set[tuple[str, int]] = set()
        for prereq in self.semester_prerequisites:
            key = (prereq.course_id, prereq.current_semester)
            if key in seen:
                raise ConfigError(
                    f"Duplicate semester prerequisite for course '{prereq.course_id}' "
                    f"semester {prereq.current_semester}"
                )
            seen.add(key)

        if not self.grading_scale:
            raise ConfigError("grading_scale must not be empty")

        if self.logging.level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level '{self.logging.level}'")
        if self.logging.max_bytes <= 0 or self.logging.backup_count < 0:
            raise ConfigError("logging.max_bytes must be positive and backup_count non-negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any], root_path: Path | None = None) -> EngineConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.
            root_path: Directory containing the config file. Relative database
                paths are resolved against it.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If a value is missing or malformed.
        """
        root_path = root_path if root_path is not None else Path()
        kwargs: dict[str, Any] = {"root_path": root_path}

        database = data.get("database") or {}
        if "path" in database:
            db_path = str(database["path"])
            if db_path != ":memory:" and not Path(db_path).is_absolute():
                db_path = str(root_path / db_path)
            kwargs["database_path"] = db_path

        completion = data.get("completion") or {}
        if "threshold" in completion:
            kwargs["completion_threshold"] = _decimal(
                completion["threshold"], "completion.threshold"
            )

        certificates = data.get("certificates") or {}
        if "url_prefix" in certificates:
            kwargs["certificate_url_prefix"] = str(certificates["url_prefix"]).rstrip("/")

        dropout = data.get("dropout") or {}
        if "default_duration_days" in dropout:
            kwargs["default_duration_days"] = _int(
                dropout["default_duration_days"], "dropout.default_duration_days"
            )
        if "refund_tiers" in dropout:
            tiers = []
            for row in _rows(dropout, "refund_tiers"):
                _missing(row, ("max_ratio", "percentage"), "refund tier")
                tiers.append(
                    RefundTier(
                        max_ratio=_decimal(row["max_ratio"], "max_ratio"),
                        percentage=_decimal(row["percentage"], "percentage"),
                    )
                )
            kwargs["refund_tiers"] = tuple(tiers)

        prerequisites = []
        for row in _rows(data, "semester_prerequisites"):
            _missing(
                row,
                (
                    "course_id",
                    "current_semester",
                    "next_semester",
                    "min_credits_required",
                    "min_gpa_required",
                ),
                "semester prerequisite",
            )
            prerequisites.append(
                SemesterPrerequisite(
                    course_id=str(row["course_id"]),
                    current_semester=_int(row["current_semester"], "current_semester"),
                    next_semester=_int(row["next_semester"], "next_semester"),
                    min_credits_required=_int(
                        row["min_credits_required"], "min_credits_required"
                    ),
                    min_gpa_required=_decimal(row["min_gpa_required"], "min_gpa_required"),
                )
            )
        kwargs["semester_prerequisites"] = tuple(prerequisites)

        if "grading_scale" in data:
            bands = []
            for row in _rows(data, "grading_scale"):
                _missing(
                    row,
                    ("min_percentage", "max_percentage", "grade", "grade_points"),
                    "grade band",
                )
                bands.append(
                    GradeBand(
                        min_percentage=_decimal(row["min_percentage"], "min_percentage"),
                        max_percentage=_decimal(row["max_percentage"], "max_percentage"),
                        grade=str(row["grade"]),
                        grade_points=_decimal(row["grade_points"], "grade_points"),
                        remarks=str(row.get("remarks", "")),
                    )
                )
            kwargs["grading_scale"] = tuple(bands)

        log_section = data.get("logging") or {}
        if log_section:
            defaults = LogSettings()
            directory = str(log_section.get("dir", defaults.directory))
            if not Path(directory).is_absolute():
                directory = str(root_path / directory)
            kwargs["logging"] = LogSettings(
                directory=directory,
                level=str(log_section.get("level", defaults.level)),
                max_bytes=_int(
                    log_section.get("max_bytes", defaults.max_bytes), "logging.max_bytes"
                ),
                backup_count=_int(
                    log_section.get("backup_count", defaults.backup_count), "logging.backup_count"
                ),
                redact=bool(log_section.get("redact", defaults.redact)),
            )

        return cls(**kwargs)


def load_config(config_path: Path | str) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Args:
        config_path: Path to evarsity.yaml file.

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return EngineConfig.from_dict(data, config_path.parent)


def find_config(start_path: Path | str | None = None) -> Path:
    """Find evarsity.yaml by walking up directory tree.

    Args:
        start_path: Starting directory. Defaults to current directory.

    Returns:
        Path to evarsity.yaml file.

    Raises:
        ConfigError: If no config file is found.
    """
    start_path = Path.cwd() if start_path is None else Path(start_path)
    current = start_path.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path
        if current == current.parent:
            break
        current = current.parent

    raise ConfigError(f"No {CONFIG_FILENAME} found in {start_path} or any parent directory")


def config_from_env() -> EngineConfig:
    """Resolve configuration from the environment.

    ``EVARSITY_CONFIG`` names a YAML file; without it the defaults apply.
    ``EVARSITY_DB_PATH`` overrides the database path either way.
    """
    config_path = os.environ.get("EVARSITY_CONFIG")
    config = load_config(config_path) if config_path else EngineConfig()

    db_path = os.environ.get("EVARSITY_DB_PATH")
    if db_path:
        config = replace(config, database_path=db_path)
    return config
