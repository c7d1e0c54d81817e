"""Local cycle prediction engine.

Calendar averaging over the recorded history:

- Next period start = latest recorded start + average cycle length
- Next period end   = next start + average duration - 1
- Ovulation         = next start - luteal phase (14 days)
- Fertility window  = 5 days before ovulation through 1 day after

Irregular histories are handled by the outlier filters in ``cycle_stats``
rather than by assuming a 28-day cycle.  Fewer than two recorded periods,
or no cycle length surviving the filters, yields no prediction.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from cyclecast.engine.base import (
    DateRange,
    PeriodInterval,
    Prediction,
    PredictionSource,
)
from cyclecast.engine.config_loader import PredictionPolicy, get_prediction_policy
from cyclecast.engine.cycle_stats import (
    compute_average_duration,
    compute_cycle_lengths,
    round_half_up,
    sort_by_start,
    summarize_history,
)


def latest_period(history: Iterable[PeriodInterval]) -> PeriodInterval | None:
    """Most recent well-formed interval by start date."""
    ordered = sort_by_start(history)
    return ordered[-1] if ordered else None


def predict_next_period(
    history: Iterable[PeriodInterval],
    policy: PredictionPolicy | None = None,
) -> DateRange | None:
    """Predict the next period's start and end dates.

    Args:
        history: Recorded intervals in any order.  Never mutated.
        policy:  Prediction policy; defaults to the global one.

    Returns:
        Inclusive date range, or None when there is not enough data.
    """
    policy = policy or get_prediction_policy()
    intervals = list(history)
    usable = sort_by_start(intervals)
    if len(usable) < policy.min_intervals_for_prediction:
        return None

    lengths = compute_cycle_lengths(usable, policy)
    if not lengths:
        return None

    average_cycle = round_half_up(sum(lengths) / len(lengths))
    latest = usable[-1]
    next_start = latest.start_date + timedelta(days=average_cycle)

    average_duration = compute_average_duration(intervals, policy)
    next_end = next_start + timedelta(days=average_duration - 1)
    return DateRange(start=next_start, end=next_end)


def compute_ovulation_and_fertility(
    next_period_start: date | None,
    policy: PredictionPolicy | None = None,
) -> tuple[date | None, DateRange | None]:
    """Ovulation date and fertility window anchored on the next period start.

    Returns:
        ``(ovulation_date, fertility_window)``; both None if the anchor is None.
    """
    if next_period_start is None:
        return None, None
    policy = policy or get_prediction_policy()
    ovulation = next_period_start - timedelta(days=policy.luteal_phase_days)
    window = DateRange(
        start=ovulation - timedelta(days=policy.fertile_days_before_ovulation),
        end=ovulation + timedelta(days=policy.fertile_days_after_ovulation),
    )
    return ovulation, window


def heuristic_confidence(
    interval_count: int,
    policy: PredictionPolicy | None = None,
) -> float | None:
    """Confidence for a local-only prediction, by number of recorded periods.

    Two periods give a single cycle sample and the lower score; three or
    more give the higher one.  Below the prediction minimum there is no
    prediction to score.
    """
    policy = policy or get_prediction_policy()
    if interval_count < policy.min_intervals_for_prediction:
        return None
    if interval_count == policy.min_intervals_for_prediction:
        return policy.confidence_few_samples
    return policy.confidence_many_samples


def days_until_next(prediction: Prediction | None, today: date) -> int | None:
    """Days from ``today`` to the predicted start.  Negative when overdue."""
    if prediction is None or prediction.next_period is None:
        return None
    return (prediction.next_period.start - today).days


class CyclePredictor:
    """Build complete local predictions under one policy.

    Usage::

        predictor = CyclePredictor()
        prediction = predictor.predict(intervals, version=3)
        if prediction is None:
            ...  # "add more data"
    """

    def __init__(self, policy: PredictionPolicy | None = None) -> None:
        self._policy = policy or get_prediction_policy()

    @property
    def policy(self) -> PredictionPolicy:
        return self._policy

    def predict(
        self,
        history: Iterable[PeriodInterval],
        version: int | None = None,
    ) -> Prediction | None:
        """Local-only prediction with heuristic confidence.

        Args:
            history: Recorded intervals in any order.
            version: History snapshot version to tag the prediction with.

        Returns:
            Prediction, or None when there is not enough data.
        """
        intervals = list(history)
        next_period = predict_next_period(intervals, self._policy)
        if next_period is None:
            return None

        ovulation, window = compute_ovulation_and_fertility(
            next_period.start, self._policy
        )
        stats = summarize_history(intervals, self._policy)
        return Prediction(
            next_period=next_period,
            ovulation_date=ovulation,
            fertility_window=window,
            confidence=heuristic_confidence(
                len(sort_by_start(intervals)), self._policy
            ),
            statistics=stats,
            source=PredictionSource.local,
            history_version=version,
        )

    def latest_period(self, history: Iterable[PeriodInterval]) -> PeriodInterval | None:
        return latest_period(history)

    @staticmethod
    def days_until_next(prediction: Prediction | None, today: date) -> int | None:
        return days_until_next(prediction, today)
