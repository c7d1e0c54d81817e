"""Canonical data models for the Cyclecast prediction engine.

``PeriodInterval`` is the only recorded entity.  Everything else here
(``CycleStatistics``, ``DateRange``, ``Prediction``) is derived on demand
from a snapshot of intervals and never persisted as source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------


class Mood(str, Enum):
    happy = "happy"
    normal = "normal"
    tired = "tired"
    stressed = "stressed"
    energetic = "energetic"


class PredictionSource(str, Enum):
    local = "local"
    remote = "remote"


def parse_day(value: Any) -> date | None:
    """Coerce a stored date value to a ``date``.

    Accepts ``date``, ``datetime`` (time dropped) and ISO strings with or
    without a time component.  Anything else returns None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# Recorded entity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodInterval:
    """One recorded menstruation episode.

    Attributes:
        id:          Store-assigned identifier, immutable.
        start_date:  First day of bleeding.  None when the stored value
                     could not be parsed.
        end_date:    Last day of bleeding (inclusive).
        symptoms:    Symptom tags; order is irrelevant.
        mood:        Optional mood tag.
        description: Free text, ignored by the engine.
    """

    id: str
    start_date: date | None
    end_date: date | None
    symptoms: frozenset[str] = field(default_factory=frozenset)
    mood: str | None = None
    description: str | None = None

    @classmethod
    def create(
        cls,
        id: str,
        start_date: date | str,
        end_date: date | str,
        symptoms: list[str] | set[str] | frozenset[str] | None = None,
        mood: str | None = None,
        description: str | None = None,
    ) -> PeriodInterval:
        return cls(
            id=id,
            start_date=parse_day(start_date),
            end_date=parse_day(end_date),
            symptoms=frozenset(symptoms or ()),
            mood=mood,
            description=description,
        )

    @property
    def is_well_formed(self) -> bool:
        """True if both dates parsed and the end is not before the start."""
        return (
            self.start_date is not None
            and self.end_date is not None
            and self.end_date >= self.start_date
        )

    def with_changes(self, **partial: Any) -> PeriodInterval:
        """Return a copy with ``partial`` applied.  ``id`` cannot change."""
        if "id" in partial and partial["id"] != self.id:
            raise ValueError("PeriodInterval.id is immutable")
        partial.pop("id", None)
        for key in ("start_date", "end_date"):
            if key in partial:
                partial[key] = parse_day(partial[key])
        if "symptoms" in partial:
            partial["symptoms"] = frozenset(partial["symptoms"] or ())
        return replace(self, **partial)


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-date range."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def to_dict(self) -> dict[str, str]:
        return {"startDate": self.start.isoformat(), "endDate": self.end.isoformat()}


@dataclass
class CycleStatistics:
    """Cycle length and duration statistics.

    Cycle fields are None when no valid cycle length survived filtering.

    Attributes:
        average_cycle_length:    Rounded mean of valid cycle lengths.
        shortest_cycle_length:   Minimum valid cycle length.
        longest_cycle_length:    Maximum valid cycle length.
        average_period_duration: Rounded mean period duration (never None).
        cycles_used:             Number of cycle-length samples behind the stats.
    """

    average_cycle_length: int | None = None
    shortest_cycle_length: int | None = None
    longest_cycle_length: int | None = None
    average_period_duration: int | None = None
    cycles_used: int = 0

    @property
    def has_cycle_data(self) -> bool:
        return self.average_cycle_length is not None


@dataclass
class Prediction:
    """Forecast for the next cycle.

    Attributes:
        next_period:      Predicted bleeding days, or None.
        ovulation_date:   Estimated ovulation day, or None.
        fertility_window: Estimated fertile days, or None.
        confidence:       0.0–1.0 reliability score, or None.
        statistics:       Statistics the forecast was built from.
        source:           Whether the dates came from the local engine or
                          the remote predictor.
        history_version:  Version of the history snapshot this answers.
    """

    next_period: DateRange | None = None
    ovulation_date: date | None = None
    fertility_window: DateRange | None = None
    confidence: float | None = None
    statistics: CycleStatistics | None = None
    source: PredictionSource = PredictionSource.local
    history_version: int | None = None

    def to_dict(self) -> dict[str, Any]:
        stats = self.statistics
        return {
            "nextPeriod": self.next_period.to_dict() if self.next_period else None,
            "ovulationDate": self.ovulation_date.isoformat() if self.ovulation_date else None,
            "fertilityWindow": (
                {
                    "start": self.fertility_window.start.isoformat(),
                    "end": self.fertility_window.end.isoformat(),
                }
                if self.fertility_window
                else None
            ),
            "confidence": self.confidence,
            "averageCycleLength": stats.average_cycle_length if stats else None,
            "shortestCycleLength": stats.shortest_cycle_length if stats else None,
            "longestCycleLength": stats.longest_cycle_length if stats else None,
            "averagePeriodDuration": stats.average_period_duration if stats else None,
            "source": self.source.value,
            "historyVersion": self.history_version,
        }
