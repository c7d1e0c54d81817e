"""Load, validate, and hot-reload the prediction policy.

The policy lives in ``prediction_policy.yaml`` alongside this module.  At
first use it is loaded once and cached.  Call ``reload_prediction_policy()``
to re-read from disk after an edit — no restart required.

Every threshold the engine applies is declared here as a named module
constant.  The YAML file may override any of them; missing keys fall back to
the constants below.

Usage::

    from cyclecast.engine.config_loader import get_prediction_policy

    policy = get_prediction_policy()
    policy.max_cycle_gap_days             # 60
    policy.remote_confidence_threshold    # 0.7
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("cyclecast.engine.config")

# Path to the YAML file sitting next to this module
_POLICY_PATH = Path(__file__).parent / "prediction_policy.yaml"


# ---------------------------------------------------------------------------
# Policy constants
# ---------------------------------------------------------------------------

# A gap between consecutive period starts at or above this many days is a
# missed entry or data error, not a cycle.
MAX_CYCLE_GAP_DAYS = 60

# A period lasting this many days or more is treated as an entry error.
MAX_PERIOD_DURATION_DAYS = 15

# Used when no recorded period has a plausible duration.
DEFAULT_PERIOD_DURATION_DAYS = 5

# Ovulation is placed this many days before the next period.
LUTEAL_PHASE_DAYS = 14

# Fertility window: 5 days before ovulation through 1 day after.
FERTILE_DAYS_BEFORE_OVULATION = 5
FERTILE_DAYS_AFTER_OVULATION = 1

# Remote predictions strictly above this confidence replace the local one.
REMOTE_CONFIDENCE_THRESHOLD = 0.7

# Remote confidence below this floor is ignored entirely (not even displayed).
REMOTE_CONFIDENCE_FLOOR = 0.0

# Heuristic confidence for local-only predictions.
CONFIDENCE_FEW_SAMPLES = 0.4   # exactly one cycle-length sample
CONFIDENCE_MANY_SAMPLES = 0.6  # two or more samples

MIN_INTERVALS_FOR_PREDICTION = 2


# ---------------------------------------------------------------------------
# Typed policy
# ---------------------------------------------------------------------------


@dataclass
class PredictionPolicy:
    """Complete, validated prediction policy.

    Attributes:
        version:                       Policy schema version string.
        max_cycle_gap_days:            Exclusive upper bound for a cycle length.
        max_period_duration_days:      Exclusive upper bound for a period duration.
        default_period_duration_days:  Fallback duration when none is usable.
        luteal_phase_days:             Days from ovulation to next period.
        fertile_days_before_ovulation: Fertility window lead.
        fertile_days_after_ovulation:  Fertility window tail.
        remote_confidence_threshold:   Remote wins when confidence exceeds this.
        remote_confidence_floor:       Remote confidence below this is dropped.
        confidence_few_samples:        Local confidence with one sample.
        confidence_many_samples:       Local confidence with two or more.
        min_intervals_for_prediction:  Minimum recorded periods to predict.
    """

    version: str = "1.0"
    max_cycle_gap_days: int = MAX_CYCLE_GAP_DAYS
    max_period_duration_days: int = MAX_PERIOD_DURATION_DAYS
    default_period_duration_days: int = DEFAULT_PERIOD_DURATION_DAYS
    luteal_phase_days: int = LUTEAL_PHASE_DAYS
    fertile_days_before_ovulation: int = FERTILE_DAYS_BEFORE_OVULATION
    fertile_days_after_ovulation: int = FERTILE_DAYS_AFTER_OVULATION
    remote_confidence_threshold: float = REMOTE_CONFIDENCE_THRESHOLD
    remote_confidence_floor: float = REMOTE_CONFIDENCE_FLOOR
    confidence_few_samples: float = CONFIDENCE_FEW_SAMPLES
    confidence_many_samples: float = CONFIDENCE_MANY_SAMPLES
    min_intervals_for_prediction: int = MIN_INTERVALS_FOR_PREDICTION
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when prediction_policy.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Prediction policy not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> PredictionPolicy:
    """Validate the raw YAML dict and construct a PredictionPolicy.

    Missing keys take the module defaults.  All problems are collected and
    reported together.

    Raises:
        ConfigValidationError: If any value is missing a sane type or range.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, default: int, path: str, minimum: int = 0) -> int:
        value: Any = section.get(key, default)
        try:
            result = int(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be an integer, got {value!r}")
            return default
        if result < minimum:
            errors.append(f"{path}.{key} = {result} must be >= {minimum}")
        return result

    def _prob(section: dict, key: str, default: float, path: str) -> float:
        value: Any = section.get(key, default)
        try:
            result = float(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be a number, got {value!r}")
            return default
        if not (0.0 <= result <= 1.0):
            errors.append(f"{path}.{key} = {result} is out of range [0.0, 1.0]")
        return result

    version = str(raw.get("version", "1.0"))

    # ── Outlier filters ──
    of_raw = raw.get("outliers") or {}
    max_gap = _int(of_raw, "max_cycle_gap_days", MAX_CYCLE_GAP_DAYS, "outliers", 2)
    max_duration = _int(
        of_raw, "max_period_duration_days", MAX_PERIOD_DURATION_DAYS, "outliers", 2
    )
    default_duration = _int(
        of_raw,
        "default_period_duration_days",
        DEFAULT_PERIOD_DURATION_DAYS,
        "outliers",
        1,
    )
    if default_duration >= max_duration:
        errors.append(
            "outliers.default_period_duration_days must be below "
            "outliers.max_period_duration_days"
        )

    # ── Ovulation / fertility ──
    ov_raw = raw.get("ovulation") or {}
    luteal = _int(ov_raw, "luteal_phase_days", LUTEAL_PHASE_DAYS, "ovulation", 1)
    before = _int(
        ov_raw, "fertile_days_before", FERTILE_DAYS_BEFORE_OVULATION, "ovulation"
    )
    after = _int(ov_raw, "fertile_days_after", FERTILE_DAYS_AFTER_OVULATION, "ovulation")

    # ── Confidence ──
    cf_raw = raw.get("confidence") or {}
    threshold = _prob(
        cf_raw, "remote_threshold", REMOTE_CONFIDENCE_THRESHOLD, "confidence"
    )
    floor = _prob(cf_raw, "remote_floor", REMOTE_CONFIDENCE_FLOOR, "confidence")
    few = _prob(cf_raw, "few_samples", CONFIDENCE_FEW_SAMPLES, "confidence")
    many = _prob(cf_raw, "many_samples", CONFIDENCE_MANY_SAMPLES, "confidence")
    min_intervals = _int(
        cf_raw, "min_intervals", MIN_INTERVALS_FOR_PREDICTION, "confidence", 2
    )

    if floor > threshold:
        errors.append("confidence.remote_floor must not exceed confidence.remote_threshold")
    if few > many:
        logger.warning(
            "confidence.few_samples (%.2f) exceeds many_samples (%.2f); "
            "sparser histories will report higher confidence",
            few,
            many,
        )

    if errors:
        raise ConfigValidationError(
            f"prediction_policy.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return PredictionPolicy(
        version=version,
        max_cycle_gap_days=max_gap,
        max_period_duration_days=max_duration,
        default_period_duration_days=default_duration,
        luteal_phase_days=luteal,
        fertile_days_before_ovulation=before,
        fertile_days_after_ovulation=after,
        remote_confidence_threshold=threshold,
        remote_confidence_floor=floor,
        confidence_few_samples=few,
        confidence_many_samples=many,
        min_intervals_for_prediction=min_intervals,
        _raw=raw,
    )


def load_prediction_policy(path: Path | None = None) -> PredictionPolicy:
    """Load and validate the prediction policy from disk.

    Args:
        path: Override path to YAML. Uses the bundled prediction_policy.yaml by default.

    Returns:
        Validated PredictionPolicy instance.
    """
    target = path or _POLICY_PATH
    raw = _load_yaml(target)
    policy = _validate_and_build(raw)
    logger.info("Loaded prediction policy v%s from %s", policy.version, target)
    return policy


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_policy: PredictionPolicy | None = None
_policy_lock = threading.Lock()


def get_prediction_policy() -> PredictionPolicy:
    """Return the global PredictionPolicy, loading it on first call.

    Thread-safe.  Use ``reload_prediction_policy()`` to refresh after YAML changes.
    """
    global _policy
    if _policy is None:
        with _policy_lock:
            if _policy is None:  # double-checked locking
                _policy = load_prediction_policy()
    return _policy


def reload_prediction_policy(path: Path | None = None) -> PredictionPolicy:
    """Reload the policy from disk and replace the global singleton.

    If validation fails, the old policy is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new policy is invalid.
        FileNotFoundError:     If the policy file is missing.
    """
    global _policy
    new_policy = load_prediction_policy(path)  # validate before acquiring lock
    with _policy_lock:
        old_version = _policy.version if _policy else "none"
        _policy = new_policy
    logger.info(
        "Reloaded prediction policy: %s → %s",
        old_version,
        new_policy.version,
    )
    return new_policy
