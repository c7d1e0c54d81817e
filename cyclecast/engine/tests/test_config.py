"""Tests for prediction_policy.yaml loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from cyclecast.engine import config_loader
from cyclecast.engine.config_loader import (
    ConfigValidationError,
    PredictionPolicy,
    _validate_and_build,
    get_prediction_policy,
    load_prediction_policy,
    reload_prediction_policy,
)


@pytest.fixture
def restore_global_policy():
    """Put the bundled policy back after a test swaps the singleton."""
    yield
    reload_prediction_policy()


class TestPolicyLoading:
    def test_load_default_policy(self, policy: PredictionPolicy) -> None:
        """The bundled prediction_policy.yaml loads without errors."""
        assert policy.version == "1.0"

    def test_bundled_values_match_constants(self, policy: PredictionPolicy) -> None:
        assert policy.max_cycle_gap_days == config_loader.MAX_CYCLE_GAP_DAYS == 60
        assert policy.max_period_duration_days == config_loader.MAX_PERIOD_DURATION_DAYS == 15
        assert policy.default_period_duration_days == 5
        assert policy.luteal_phase_days == 14
        assert policy.fertile_days_before_ovulation == 5
        assert policy.fertile_days_after_ovulation == 1
        assert policy.remote_confidence_threshold == pytest.approx(0.7)
        assert policy.confidence_few_samples == pytest.approx(0.4)
        assert policy.confidence_many_samples == pytest.approx(0.6)
        assert policy.min_intervals_for_prediction == 2

    def test_dataclass_defaults_match_bundled_file(self, policy: PredictionPolicy) -> None:
        defaults = PredictionPolicy()
        assert defaults.max_cycle_gap_days == policy.max_cycle_gap_days
        assert defaults.remote_confidence_threshold == policy.remote_confidence_threshold

    def test_singleton_is_cached(self) -> None:
        assert get_prediction_policy() is get_prediction_policy()

    def test_load_nonexistent_file_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_prediction_policy(path=Path("/nonexistent/path/policy.yaml"))

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "policy.yaml"
        path.write_text("outliers: [unclosed")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_prediction_policy(path)


class TestPolicyValidation:
    def test_empty_config_uses_defaults(self) -> None:
        policy = _validate_and_build({})
        assert policy.max_cycle_gap_days == 60
        assert policy.remote_confidence_threshold == pytest.approx(0.7)

    def test_partial_override(self) -> None:
        policy = _validate_and_build({"confidence": {"remote_threshold": 0.6}})
        assert policy.remote_confidence_threshold == pytest.approx(0.6)
        assert policy.confidence_many_samples == pytest.approx(0.6)

    def test_out_of_range_probability_raises(self) -> None:
        with pytest.raises(ConfigValidationError, match="out of range"):
            _validate_and_build({"confidence": {"remote_threshold": 1.5}})

    def test_non_numeric_value_raises(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be an integer"):
            _validate_and_build({"outliers": {"max_cycle_gap_days": "sixty"}})

    def test_default_duration_must_be_plausible(self) -> None:
        with pytest.raises(ConfigValidationError, match="default_period_duration_days"):
            _validate_and_build(
                {"outliers": {"max_period_duration_days": 5, "default_period_duration_days": 5}}
            )

    def test_floor_above_threshold_raises(self) -> None:
        with pytest.raises(ConfigValidationError, match="remote_floor"):
            _validate_and_build({"confidence": {"remote_threshold": 0.5, "remote_floor": 0.6}})

    def test_errors_are_collected(self) -> None:
        with pytest.raises(ConfigValidationError, match="2 validation error"):
            _validate_and_build(
                {
                    "outliers": {"max_cycle_gap_days": "x"},
                    "confidence": {"few_samples": 2.0},
                }
            )

    def test_hot_reload(self, tmp_path: Path, restore_global_policy) -> None:
        """reload_prediction_policy() should replace the global singleton."""
        config_file = tmp_path / "prediction_policy.yaml"
        config_file.write_text(
            'version: "2.0-test"\n'
            "outliers:\n"
            "  max_cycle_gap_days: 45\n"
            "confidence:\n"
            "  remote_threshold: 0.8\n"
        )

        new_policy = reload_prediction_policy(path=config_file)

        assert new_policy.version == "2.0-test"
        assert get_prediction_policy() is new_policy
        assert get_prediction_policy().max_cycle_gap_days == 45

    def test_failed_reload_keeps_old_policy(self, tmp_path: Path) -> None:
        before = get_prediction_policy()
        config_file = tmp_path / "prediction_policy.yaml"
        config_file.write_text("confidence:\n  remote_threshold: 3\n")

        with pytest.raises(ConfigValidationError):
            reload_prediction_policy(path=config_file)

        assert get_prediction_policy() is before
