"""Cyclecast cycle prediction engine.

Turns a history of recorded periods into a forecast of the next period,
ovulation date and fertility window, optionally enhanced by a remote
predictor.  Cycle data is health data: nothing here leaves the process
except through the configured remote predictor.

Core modules:
    base          — PeriodInterval and derived Prediction / CycleStatistics models
    config_loader — Load/validate/hot-reload prediction_policy.yaml
    cycle_stats   — Cycle length and period duration statistics
    predictor     — Local prediction, ovulation and fertility window
    merge         — Pure local/remote merge decision and result type
    remote        — RemotePredictor interface and Supabase RPC adapter
    store         — PeriodStore interface and in-memory store
    cache         — Best-effort JSON snapshot cache
    service       — Versioned snapshots, recompute, remote fallback
    insights      — Summary figures for dashboard views
"""

from cyclecast.engine.base import (
    CycleStatistics,
    DateRange,
    Mood,
    PeriodInterval,
    Prediction,
    PredictionSource,
)
from cyclecast.engine.config_loader import PredictionPolicy, get_prediction_policy
from cyclecast.engine.merge import (
    DegradedReason,
    PredictionResult,
    RemoteOutcome,
    merge_with_remote_prediction,
)
from cyclecast.engine.predictor import (
    CyclePredictor,
    compute_ovulation_and_fertility,
    predict_next_period,
)
from cyclecast.engine.service import HistorySnapshot, PredictionService

__all__ = [
    "PeriodInterval",
    "CycleStatistics",
    "DateRange",
    "Prediction",
    "PredictionSource",
    "Mood",
    "PredictionPolicy",
    "get_prediction_policy",
    "CyclePredictor",
    "predict_next_period",
    "compute_ovulation_and_fertility",
    "DegradedReason",
    "PredictionResult",
    "RemoteOutcome",
    "merge_with_remote_prediction",
    "HistorySnapshot",
    "PredictionService",
]
