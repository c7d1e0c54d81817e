"""Period history store.

``PeriodStore`` is the persistence interface the prediction service reads
from and writes through.  All operations are async and may fail with a
``StoreError``; callers keep their previous snapshot when that happens.

``InMemoryPeriodStore`` is the bundled implementation used offline and in
tests.  Writers are serialized with an ``asyncio.Lock`` so a reader never
sees a half-applied change.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from cyclecast.engine.base import PeriodInterval

logger = logging.getLogger("cyclecast.engine.store")


class StoreError(Exception):
    """Recoverable persistence failure (network, storage)."""


class IntervalNotFoundError(StoreError):
    """Raised when updating or deleting an unknown interval id."""

    def __init__(self, interval_id: str) -> None:
        super().__init__(f"Period interval not found: {interval_id}")
        self.interval_id = interval_id


class PeriodStore(ABC):
    """Abstract store of recorded period intervals, per user."""

    @abstractmethod
    async def list_intervals(self, user_id: str) -> list[PeriodInterval]:
        """Return every interval recorded for ``user_id``, in insertion order."""
        ...

    @abstractmethod
    async def save(
        self,
        user_id: str,
        start_date: date | str,
        end_date: date | str,
        symptoms: list[str] | None = None,
        mood: str | None = None,
        description: str | None = None,
    ) -> PeriodInterval:
        """Create an interval and return it with its assigned id."""
        ...

    @abstractmethod
    async def update(self, user_id: str, interval_id: str, **partial: Any) -> PeriodInterval:
        """Apply a partial update and return the new interval."""
        ...

    @abstractmethod
    async def delete(self, user_id: str, interval_id: str) -> None:
        """Remove an interval."""
        ...


class InMemoryPeriodStore(PeriodStore):
    """Process-local store keyed by user id.

    Ids are millisecond timestamps, bumped when two saves land in the same
    millisecond so they stay unique and increasing.
    """

    def __init__(self, seed: dict[str, list[PeriodInterval]] | None = None) -> None:
        self._intervals: dict[str, list[PeriodInterval]] = {
            user_id: list(intervals) for user_id, intervals in (seed or {}).items()
        }
        self._lock = asyncio.Lock()
        self._last_id = 0

    def _next_id(self) -> str:
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    async def list_intervals(self, user_id: str) -> list[PeriodInterval]:
        async with self._lock:
            return list(self._intervals.get(user_id, []))

    async def save(
        self,
        user_id: str,
        start_date: date | str,
        end_date: date | str,
        symptoms: list[str] | None = None,
        mood: str | None = None,
        description: str | None = None,
    ) -> PeriodInterval:
        async with self._lock:
            interval = PeriodInterval.create(
                id=self._next_id(),
                start_date=start_date,
                end_date=end_date,
                symptoms=symptoms,
                mood=mood,
                description=description,
            )
            self._intervals.setdefault(user_id, []).append(interval)
        logger.debug("Saved interval %s for user %s", interval.id, user_id)
        return interval

    async def update(self, user_id: str, interval_id: str, **partial: Any) -> PeriodInterval:
        async with self._lock:
            intervals = self._intervals.get(user_id, [])
            for index, existing in enumerate(intervals):
                if existing.id == interval_id:
                    updated = existing.with_changes(**partial)
                    intervals[index] = updated
                    return updated
        raise IntervalNotFoundError(interval_id)

    async def delete(self, user_id: str, interval_id: str) -> None:
        async with self._lock:
            intervals = self._intervals.get(user_id, [])
            remaining = [p for p in intervals if p.id != interval_id]
            if len(remaining) == len(intervals):
                raise IntervalNotFoundError(interval_id)
            self._intervals[user_id] = remaining
        logger.debug("Deleted interval %s for user %s", interval_id, user_id)
