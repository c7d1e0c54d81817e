"""Tests for local prediction, ovulation and fertility window derivation."""

from __future__ import annotations

from datetime import date

import pytest

from cyclecast.engine.base import DateRange, PeriodInterval, PredictionSource
from cyclecast.engine.config_loader import PredictionPolicy
from cyclecast.engine.predictor import (
    CyclePredictor,
    compute_ovulation_and_fertility,
    days_until_next,
    heuristic_confidence,
    latest_period,
    predict_next_period,
)


class TestPredictNextPeriod:
    def test_single_period_gives_no_prediction(self, policy: PredictionPolicy) -> None:
        history = [PeriodInterval.create("1", "2024-01-01", "2024-01-05")]
        assert predict_next_period(history, policy) is None

    def test_empty_history_gives_no_prediction(self, policy: PredictionPolicy) -> None:
        assert predict_next_period([], policy) is None

    def test_two_periods_prediction_arithmetic(
        self, policy: PredictionPolicy, two_periods: list[PeriodInterval]
    ) -> None:
        predicted = predict_next_period(two_periods, policy)
        assert predicted == DateRange(date(2024, 2, 26), date(2024, 3, 1))
        assert predicted.to_dict() == {"startDate": "2024-02-26", "endDate": "2024-03-01"}

    def test_anchors_on_latest_start_regardless_of_order(
        self, policy: PredictionPolicy, regular_history: list[PeriodInterval]
    ) -> None:
        predicted = predict_next_period(regular_history, policy)
        # latest start 2024-03-26 + 28 days; average duration 5
        assert predicted == DateRange(date(2024, 4, 23), date(2024, 4, 27))

    def test_all_gaps_outliers_gives_no_prediction(self, policy: PredictionPolicy) -> None:
        history = [
            PeriodInterval.create("1", "2024-01-01", "2024-01-05"),
            PeriodInterval.create("2", "2024-06-01", "2024-06-05"),
        ]
        assert predict_next_period(history, policy) is None

    def test_malformed_second_period_gives_no_prediction(
        self, policy: PredictionPolicy
    ) -> None:
        history = [
            PeriodInterval.create("1", "2024-01-01", "2024-01-05"),
            PeriodInterval.create("2", "garbage", "2024-02-02"),
        ]
        assert predict_next_period(history, policy) is None

    def test_outlier_durations_use_default(self, policy: PredictionPolicy) -> None:
        history = [
            PeriodInterval.create("1", "2024-01-01", "2024-01-20"),
            PeriodInterval.create("2", "2024-01-29", "2024-02-20"),
        ]
        predicted = predict_next_period(history, policy)
        assert predicted == DateRange(date(2024, 2, 26), date(2024, 3, 1))
        assert predicted.days == 5

    def test_repeated_calls_are_identical(
        self, policy: PredictionPolicy, regular_history: list[PeriodInterval]
    ) -> None:
        first = CyclePredictor(policy).predict(regular_history)
        second = CyclePredictor(policy).predict(regular_history)
        assert first == second
        assert predict_next_period(regular_history, policy) == predict_next_period(
            regular_history, policy
        )


class TestOvulationAndFertility:
    def test_ovulation_fourteen_days_before(self, policy: PredictionPolicy) -> None:
        ovulation, window = compute_ovulation_and_fertility(date(2024, 2, 26), policy)
        assert ovulation == date(2024, 2, 12)
        assert window == DateRange(date(2024, 2, 7), date(2024, 2, 13))
        assert window.days == 7

    def test_none_anchor_gives_none(self, policy: PredictionPolicy) -> None:
        assert compute_ovulation_and_fertility(None, policy) == (None, None)

    def test_policy_luteal_override(self) -> None:
        policy = PredictionPolicy(luteal_phase_days=12)
        ovulation, _ = compute_ovulation_and_fertility(date(2024, 2, 26), policy)
        assert ovulation == date(2024, 2, 14)


class TestConfidence:
    @pytest.mark.parametrize(
        ("count", "expected"),
        [(0, None), (1, None), (2, 0.4), (3, 0.6), (12, 0.6)],
    )
    def test_heuristic_confidence(
        self, policy: PredictionPolicy, count: int, expected: float | None
    ) -> None:
        assert heuristic_confidence(count, policy) == expected


class TestCyclePredictor:
    def test_full_local_prediction(
        self, policy: PredictionPolicy, two_periods: list[PeriodInterval]
    ) -> None:
        prediction = CyclePredictor(policy).predict(two_periods, version=7)
        assert prediction is not None
        assert prediction.next_period == DateRange(date(2024, 2, 26), date(2024, 3, 1))
        assert prediction.ovulation_date == date(2024, 2, 12)
        assert prediction.fertility_window == DateRange(date(2024, 2, 7), date(2024, 2, 13))
        assert prediction.confidence == 0.4
        assert prediction.source is PredictionSource.local
        assert prediction.history_version == 7
        assert prediction.statistics.average_cycle_length == 28
        assert prediction.statistics.average_period_duration == 5

    def test_more_history_raises_confidence(
        self, policy: PredictionPolicy, regular_history: list[PeriodInterval]
    ) -> None:
        prediction = CyclePredictor(policy).predict(regular_history)
        assert prediction.confidence == 0.6

    def test_insufficient_data_returns_none(self, policy: PredictionPolicy) -> None:
        history = [PeriodInterval.create("1", "2024-01-01", "2024-01-05")]
        assert CyclePredictor(policy).predict(history) is None

    def test_to_dict_uses_iso_dates(
        self, policy: PredictionPolicy, two_periods: list[PeriodInterval]
    ) -> None:
        data = CyclePredictor(policy).predict(two_periods).to_dict()
        assert data["nextPeriod"] == {"startDate": "2024-02-26", "endDate": "2024-03-01"}
        assert data["ovulationDate"] == "2024-02-12"
        assert data["fertilityWindow"] == {"start": "2024-02-07", "end": "2024-02-13"}
        assert data["source"] == "local"


class TestHelpers:
    def test_latest_period(self, regular_history: list[PeriodInterval]) -> None:
        assert latest_period(regular_history).id == "4"

    def test_latest_period_empty(self) -> None:
        assert latest_period([]) is None

    def test_days_until_next(
        self, policy: PredictionPolicy, two_periods: list[PeriodInterval]
    ) -> None:
        prediction = CyclePredictor(policy).predict(two_periods)
        assert days_until_next(prediction, date(2024, 2, 20)) == 6
        assert days_until_next(prediction, date(2024, 2, 28)) == -2
        assert days_until_next(None, date(2024, 2, 20)) is None
