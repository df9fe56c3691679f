"""Unit tests for configuration loading."""

import os
from decimal import Decimal
from pathlib import Path
from textwrap import dedent
from unittest.mock import patch

import pytest

from evarsity.config import (
    DEFAULT_GRADING_SCALE,
    DEFAULT_REFUND_TIERS,
    ConfigError,
    EngineConfig,
    LogSettings,
    RefundTier,
    config_from_env,
    find_config,
    load_config,
)


@pytest.fixture
def temp_config(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_content = dedent("""
        database:
          path: data/evarsity.db

        completion:
          threshold: 85

        certificates:
          url_prefix: https://certs.example.org/issued/

        dropout:
          default_duration_days: 120
          refund_tiers:
            - {max_ratio: 0.2, percentage: 100}
            - {max_ratio: 0.6, percentage: 40}

        semester_prerequisites:
          - course_id: BTECH-CSE
            current_semester: 1
            next_semester: 2
            min_credits_required: 18
            min_gpa_required: 5.5

        logging:
          dir: var/log
          level: debug
          backup_count: 2
    """).strip()

    config_path = tmp_path / "evarsity.yaml"
    config_path.write_text(config_content)
    return config_path


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config function."""

    def test_database_path_resolved_against_config_dir(self, temp_config: Path) -> None:
        config = load_config(temp_config)

        assert config.database_path == str(temp_config.parent / "data" / "evarsity.db")

    def test_memory_database_kept_as_is(self, tmp_path: Path) -> None:
        path = tmp_path / "evarsity.yaml"
        path.write_text("database:\n  path: ':memory:'\n")

        assert load_config(path).database_path == ":memory:"

    def test_scalars(self, temp_config: Path) -> None:
        config = load_config(temp_config)

        assert config.completion_threshold == Decimal("85")
        assert config.certificate_url_prefix == "https://certs.example.org/issued"
        assert config.default_duration_days == 120

    def test_refund_tiers(self, temp_config: Path) -> None:
        config = load_config(temp_config)

        assert config.refund_tiers == (
            RefundTier(Decimal("0.2"), Decimal("100")),
            RefundTier(Decimal("0.6"), Decimal("40")),
        )

    def test_semester_prerequisites(self, temp_config: Path) -> None:
        config = load_config(temp_config)

        (prereq,) = config.semester_prerequisites
        assert prereq.course_id == "BTECH-CSE"
        assert prereq.next_semester == 2
        assert prereq.min_credits_required == 18
        assert prereq.min_gpa_required == Decimal("5.5")

    def test_defaults_when_sections_missing(self, temp_config: Path) -> None:
        config = load_config(temp_config)

        assert config.grading_scale == DEFAULT_GRADING_SCALE

    def test_logging_section(self, temp_config: Path) -> None:
        settings = load_config(temp_config).logging

        assert settings.directory == str(temp_config.parent / "var" / "log")
        assert settings.level == "debug"
        assert settings.backup_count == 2
        assert settings.max_bytes == LogSettings().max_bytes
        assert settings.redact is True

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "evarsity.yaml"
        path.write_text("")

        config = load_config(path)

        assert config.refund_tiers == DEFAULT_REFUND_TIERS
        assert config.completion_threshold == Decimal("90.0")
        assert config.semester_prerequisites == ()

    def test_load_sets_root_path(self, temp_config: Path) -> None:
        assert load_config(temp_config).root_path == temp_config.parent

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nonexistent.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "evarsity.yaml"
        path.write_text("dropout: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "evarsity.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_missing_prerequisite_field(self, tmp_path: Path) -> None:
        path = tmp_path / "evarsity.yaml"
        path.write_text(
            dedent("""
                semester_prerequisites:
                  - course_id: BTECH-CSE
                    current_semester: 1
            """)
        )

        with pytest.raises(ConfigError, match="missing required fields"):
            load_config(path)

    def test_non_numeric_gpa(self, tmp_path: Path) -> None:
        path = tmp_path / "evarsity.yaml"
        path.write_text(
            dedent("""
                semester_prerequisites:
                  - course_id: BTECH-CSE
                    current_semester: 1
                    next_semester: 2
                    min_credits_required: 18
                    min_gpa_required: high
            """)
        )

        with pytest.raises(ConfigError, match="must be a number"):
            load_config(path)

    def test_duplicate_prerequisite_rejected(self, tmp_path: Path) -> None:
        row = (
            "  - {course_id: X, current_semester: 1, next_semester: 2, "
            "min_credits_required: 1, min_gpa_required: 1}\n"
        )
        path = tmp_path / "evarsity.yaml"
        path.write_text("semester_prerequisites:\n" + row + row)

        with pytest.raises(ConfigError, match="Duplicate"):
            load_config(path)


@pytest.mark.unit
class TestEngineConfigValidation:
    """Tests for EngineConfig.__post_init__."""

    def test_threshold_out_of_range(self) -> None:
        with pytest.raises(ConfigError):
            EngineConfig(completion_threshold=Decimal("101"))

    def test_tiers_must_increase(self) -> None:
        tiers = (
            RefundTier(Decimal("0.5"), Decimal("50")),
            RefundTier(Decimal("0.25"), Decimal("90")),
        )
        with pytest.raises(ConfigError, match="increasing"):
            EngineConfig(refund_tiers=tiers)

    def test_tier_percentage_bounded(self) -> None:
        with pytest.raises(ConfigError):
            EngineConfig(refund_tiers=(RefundTier(Decimal("0.5"), Decimal("150")),))

    def test_empty_grading_scale(self) -> None:
        with pytest.raises(ConfigError):
            EngineConfig(grading_scale=())

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ConfigError, match="log level"):
            EngineConfig(logging=LogSettings(level="LOUD"))

    def test_log_rotation_size_positive(self) -> None:
        with pytest.raises(ConfigError):
            EngineConfig(logging=LogSettings(max_bytes=0))


@pytest.mark.unit
class TestFindConfig:
    """Tests for find_config function."""

    def test_find_in_current_dir(self, temp_config: Path) -> None:
        assert find_config(temp_config.parent) == temp_config

    def test_find_in_parent_dir(self, temp_config: Path) -> None:
        subdir = temp_config.parent / "a" / "b"
        subdir.mkdir(parents=True)

        assert find_config(subdir) == temp_config

    def test_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="No evarsity.yaml found"):
            find_config(tmp_path)


@pytest.mark.unit
class TestConfigFromEnv:
    """Tests for config_from_env."""

    def test_defaults_without_env(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert config_from_env() == EngineConfig()

    def test_config_file_from_env(self, temp_config: Path) -> None:
        with patch.dict(os.environ, {"EVARSITY_CONFIG": str(temp_config)}, clear=True):
            assert config_from_env().default_duration_days == 120

    def test_db_path_override(self, temp_config: Path) -> None:
        env = {"EVARSITY_CONFIG": str(temp_config), "EVARSITY_DB_PATH": ":memory:"}
        with patch.dict(os.environ, env, clear=True):
            config = config_from_env()

        assert config.database_path == ":memory:"
        assert config.default_duration_days == 120
