"""Summary figures for the insights and dashboard views.

Collects the numbers the presentation layer shows next to a prediction:
average cycle and duration, a rough ovulation-day estimate, the countdown
to the next period, and what the user logs most often.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from cyclecast.engine.base import CycleStatistics, PeriodInterval, Prediction
from cyclecast.engine.config_loader import PredictionPolicy
from cyclecast.engine.cycle_stats import summarize_history
from cyclecast.engine.predictor import days_until_next, latest_period


@dataclass
class CycleInsights:
    """Derived summary for one history snapshot.

    Attributes:
        statistics:          Cycle and duration statistics.
        ovulation_cycle_day: Approximate ovulation day within a cycle
                             (half the average cycle), or None.
        days_until_next:     Countdown to the predicted start; negative when late.
        latest_period:       Most recent recorded period.
        symptom_counts:      How often each symptom was logged, most common first.
        most_common_mood:    Mood logged most often, or None.
        interval_count:      Number of periods recorded.
    """

    statistics: CycleStatistics
    ovulation_cycle_day: int | None = None
    days_until_next: int | None = None
    latest_period: PeriodInterval | None = None
    symptom_counts: list[tuple[str, int]] = field(default_factory=list)
    most_common_mood: str | None = None
    interval_count: int = 0

    @property
    def needs_more_data(self) -> bool:
        return not self.statistics.has_cycle_data


def is_predicted_period_day(prediction: Prediction | None, day: date) -> bool:
    """True if ``day`` falls inside the predicted bleeding range."""
    return (
        prediction is not None
        and prediction.next_period is not None
        and prediction.next_period.contains(day)
    )


def is_fertile_day(prediction: Prediction | None, day: date) -> bool:
    return (
        prediction is not None
        and prediction.fertility_window is not None
        and prediction.fertility_window.contains(day)
    )


def build_insights(
    history: Iterable[PeriodInterval],
    prediction: Prediction | None,
    today: date,
    policy: PredictionPolicy | None = None,
) -> CycleInsights:
    """Assemble the insights summary for a history and its prediction."""
    intervals = list(history)
    stats = summarize_history(intervals, policy)

    symptoms = Counter(tag for p in intervals for tag in p.symptoms)
    moods = Counter(p.mood for p in intervals if p.mood)

    return CycleInsights(
        statistics=stats,
        ovulation_cycle_day=(
            stats.average_cycle_length // 2 if stats.average_cycle_length else None
        ),
        days_until_next=days_until_next(prediction, today),
        latest_period=latest_period(intervals),
        # ties broken alphabetically so output is stable
        symptom_counts=sorted(symptoms.items(), key=lambda kv: (-kv[1], kv[0])),
        most_common_mood=(
            min(moods.items(), key=lambda kv: (-kv[1], kv[0]))[0] if moods else None
        ),
        interval_count=len(intervals),
    )
