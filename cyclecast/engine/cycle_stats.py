"""Cycle length and period duration statistics.

All functions here are pure: they read a snapshot of intervals, never
mutate it, and never raise for bad data.  Malformed intervals are skipped
as if they had not been recorded.
"""

from __future__ import annotations

import math
import statistics
from typing import Iterable

from cyclecast.engine.base import CycleStatistics, PeriodInterval
from cyclecast.engine.config_loader import PredictionPolicy, get_prediction_policy


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    Python's ``round`` uses banker's rounding (``round(28.5) == 28``);
    calendar averages need ``28.5 -> 29``.
    """
    return math.floor(value + 0.5)


def sort_by_start(history: Iterable[PeriodInterval]) -> list[PeriodInterval]:
    """Return well-formed intervals, oldest first."""
    dated = [p for p in history if p.is_well_formed]
    return sorted(dated, key=lambda p: p.start_date)


def compute_cycle_lengths(
    history: Iterable[PeriodInterval],
    policy: PredictionPolicy | None = None,
) -> list[int]:
    """Days between consecutive period starts, outliers removed.

    A gap of zero or fewer days (duplicate entry) or at or above
    ``policy.max_cycle_gap_days`` (missed entries) is dropped.

    Args:
        history: Recorded intervals in any order.
        policy:  Prediction policy; defaults to the global one.

    Returns:
        Valid cycle lengths in chronological order (possibly empty).
    """
    policy = policy or get_prediction_policy()
    ordered = sort_by_start(history)

    lengths: list[int] = []
    for previous, current in zip(ordered, ordered[1:]):
        difference = (current.start_date - previous.start_date).days
        if 0 < difference < policy.max_cycle_gap_days:
            lengths.append(difference)
    return lengths


def compute_statistics(cycle_lengths: list[int]) -> CycleStatistics:
    """Average, shortest and longest cycle length.

    An empty list means insufficient data: every cycle field stays None.
    """
    if not cycle_lengths:
        return CycleStatistics()
    return CycleStatistics(
        average_cycle_length=round_half_up(statistics.mean(cycle_lengths)),
        shortest_cycle_length=min(cycle_lengths),
        longest_cycle_length=max(cycle_lengths),
        cycles_used=len(cycle_lengths),
    )


def period_durations(
    history: Iterable[PeriodInterval],
    policy: PredictionPolicy | None = None,
) -> list[int]:
    """Inclusive day counts of every plausible recorded period."""
    policy = policy or get_prediction_policy()
    durations: list[int] = []
    for interval in history:
        if interval.start_date is None or interval.end_date is None:
            continue
        # end before start gives duration <= 0 and is dropped below
        duration = (interval.end_date - interval.start_date).days + 1
        if 0 < duration < policy.max_period_duration_days:
            durations.append(duration)
    return durations


def compute_average_duration(
    history: Iterable[PeriodInterval],
    policy: PredictionPolicy | None = None,
) -> int:
    """Rounded mean period duration in days.

    Falls back to ``policy.default_period_duration_days`` when nothing
    plausible is recorded, so date arithmetic downstream always has a value.
    """
    policy = policy or get_prediction_policy()
    durations = period_durations(history, policy)
    if not durations:
        return policy.default_period_duration_days
    return round_half_up(statistics.mean(durations))


def summarize_history(
    history: Iterable[PeriodInterval],
    policy: PredictionPolicy | None = None,
) -> CycleStatistics:
    """Full statistics for a history snapshot."""
    policy = policy or get_prediction_policy()
    intervals = list(history)
    stats = compute_statistics(compute_cycle_lengths(intervals, policy))
    stats.average_period_duration = compute_average_duration(intervals, policy)
    return stats
