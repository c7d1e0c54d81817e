"""Tests for the insights summary."""

from __future__ import annotations

from datetime import date

from cyclecast.engine.base import PeriodInterval
from cyclecast.engine.config_loader import PredictionPolicy
from cyclecast.engine.insights import (
    build_insights,
    is_fertile_day,
    is_predicted_period_day,
)
from cyclecast.engine.predictor import CyclePredictor


class TestBuildInsights:
    def test_summary_figures(
        self, policy: PredictionPolicy, regular_history: list[PeriodInterval]
    ) -> None:
        prediction = CyclePredictor(policy).predict(regular_history)
        insights = build_insights(regular_history, prediction, date(2024, 4, 20), policy)

        assert insights.statistics.average_cycle_length == 28
        assert insights.statistics.average_period_duration == 5
        assert insights.ovulation_cycle_day == 14
        assert insights.days_until_next == 3
        assert insights.latest_period.id == "4"
        assert insights.interval_count == 4
        assert not insights.needs_more_data

    def test_symptom_and_mood_counts(
        self, policy: PredictionPolicy, regular_history: list[PeriodInterval]
    ) -> None:
        insights = build_insights(regular_history, None, date(2024, 4, 20), policy)
        assert insights.symptom_counts == [("cramps", 2), ("bloating", 1), ("headache", 1)]
        assert insights.most_common_mood == "tired"

    def test_single_period_needs_more_data(self, policy: PredictionPolicy) -> None:
        history = [PeriodInterval.create("1", "2024-01-01", "2024-01-05")]
        insights = build_insights(history, None, date(2024, 1, 10), policy)
        assert insights.needs_more_data
        assert insights.ovulation_cycle_day is None
        assert insights.days_until_next is None
        assert insights.statistics.average_period_duration == 5
        assert insights.most_common_mood is None


class TestCalendarMarkers:
    def test_predicted_period_days(
        self, policy: PredictionPolicy, two_periods: list[PeriodInterval]
    ) -> None:
        prediction = CyclePredictor(policy).predict(two_periods)
        assert is_predicted_period_day(prediction, date(2024, 2, 26))
        assert is_predicted_period_day(prediction, date(2024, 3, 1))
        assert not is_predicted_period_day(prediction, date(2024, 3, 2))
        assert not is_predicted_period_day(None, date(2024, 2, 26))

    def test_fertile_days(
        self, policy: PredictionPolicy, two_periods: list[PeriodInterval]
    ) -> None:
        prediction = CyclePredictor(policy).predict(two_periods)
        assert is_fertile_day(prediction, date(2024, 2, 7))
        assert is_fertile_day(prediction, date(2024, 2, 13))
        assert not is_fertile_day(prediction, date(2024, 2, 14))
