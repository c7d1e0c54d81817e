"""Prediction service: snapshots, recompute, and remote consultation.

The service owns the per-user ``HistorySnapshot`` (an explicit value, not
process-wide state) and recomputes predictions over it on demand.

Ordering: each snapshot carries a version that increases whenever the
history content changes.  A prediction is tagged with the version it was
computed from.  If the history changes while a remote call is pending, the
late answer is discarded on arrival and the newest snapshot wins, whatever
order the responses come back in.

Failures:
    - Store read fails  → keep the last snapshot, else fall back to the cache.
    - Store write fails → keep the last snapshot, re-raise ``StoreError``.
    - Remote fails/hangs → local prediction, result marked degraded.

Usage::

    service = PredictionService(InMemoryPeriodStore(), remote=remote)
    await service.add_period(user_id, "2024-01-01", "2024-01-05")
    await service.add_period(user_id, "2024-01-29", "2024-02-02")
    result = await service.predict(user_id)
    result.prediction.next_period   # DateRange(2024-02-26, 2024-03-01)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any

from cyclecast.engine.base import PeriodInterval, Prediction
from cyclecast.engine.cache import LocalSnapshotCache
from cyclecast.engine.config_loader import PredictionPolicy, get_prediction_policy
from cyclecast.engine.insights import CycleInsights, build_insights
from cyclecast.engine.merge import (
    DegradedReason,
    PredictionResult,
    RemoteOutcome,
    merge_with_remote_prediction,
)
from cyclecast.engine.predictor import CyclePredictor
from cyclecast.engine.remote import RemotePredictor
from cyclecast.engine.store import PeriodStore, StoreError

logger = logging.getLogger("cyclecast.engine.service")

DEFAULT_REMOTE_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class HistorySnapshot:
    """Consistent, immutable view of one user's history.

    Attributes:
        user_id:   Owner of the history.
        version:   Monotonic per-user version; bumps on every content change.
        intervals: Intervals in store insertion order.
    """

    user_id: str
    version: int
    intervals: tuple[PeriodInterval, ...]

    def __len__(self) -> int:
        return len(self.intervals)


class PredictionService:
    """Keep per-user snapshots and produce merged predictions over them."""

    def __init__(
        self,
        store: PeriodStore,
        remote: RemotePredictor | None = None,
        cache: LocalSnapshotCache | None = None,
        policy: PredictionPolicy | None = None,
        remote_timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self._remote = remote
        self._cache = cache
        self._policy = policy or get_prediction_policy()
        self._predictor = CyclePredictor(self._policy)
        self._remote_timeout = remote_timeout
        self._snapshots: dict[str, HistorySnapshot] = {}
        self._versions: dict[str, int] = {}
        self._results: dict[str, tuple[int, PredictionResult]] = {}
        self._write_locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self, user_id: str) -> HistorySnapshot | None:
        """Current snapshot for ``user_id``, or None if never loaded."""
        return self._snapshots.get(user_id)

    def _write_lock(self, user_id: str) -> asyncio.Lock:
        return self._write_locks.setdefault(user_id, asyncio.Lock())

    async def _install(
        self, user_id: str, intervals: list[PeriodInterval]
    ) -> HistorySnapshot:
        current = self._snapshots.get(user_id)
        content = tuple(intervals)
        if current is not None and current.intervals == content:
            return current

        version = self._versions.get(user_id, 0) + 1
        self._versions[user_id] = version
        snapshot = HistorySnapshot(user_id=user_id, version=version, intervals=content)
        self._snapshots[user_id] = snapshot
        if self._cache is not None:
            await asyncio.to_thread(self._cache.write, user_id, list(content))
        return snapshot

    async def refresh(self, user_id: str) -> HistorySnapshot:
        """Re-read the store, degrading to the last snapshot or the cache."""
        async with self._write_lock(user_id):
            return await self._reload(user_id)

    async def _reload(self, user_id: str) -> HistorySnapshot:
        # Caller holds the user's write lock.
        try:
            intervals = await self._store.list_intervals(user_id)
        except StoreError as exc:
            current = self._snapshots.get(user_id)
            if current is not None:
                logger.warning(
                    "Store read failed for user %s, keeping snapshot v%d: %s",
                    user_id,
                    current.version,
                    exc,
                )
                return current
            cached = (
                await asyncio.to_thread(self._cache.read, user_id)
                if self._cache is not None
                else []
            )
            logger.warning(
                "Store read failed for user %s, using %d cached interval(s): %s",
                user_id,
                len(cached),
                exc,
            )
            return await self._install(user_id, cached)
        return await self._install(user_id, intervals)

    async def _ensure_snapshot(self, user_id: str) -> HistorySnapshot:
        current = self._snapshots.get(user_id)
        if current is not None:
            return current
        return await self.refresh(user_id)

    async def _loaded_snapshot(self, user_id: str) -> HistorySnapshot:
        # Caller holds the user's write lock.
        current = self._snapshots.get(user_id)
        if current is not None:
            return current
        return await self._reload(user_id)

    # ------------------------------------------------------------------
    # Mutations
    #
    # Writers for one user run one at a time, and each rebuilds from the
    # snapshot current after its store call, so overlapping writes all land.
    # ------------------------------------------------------------------

    async def add_period(
        self,
        user_id: str,
        start_date: date | str,
        end_date: date | str,
        symptoms: list[str] | None = None,
        mood: str | None = None,
        description: str | None = None,
    ) -> PeriodInterval:
        """Record a period.  On ``StoreError`` the snapshot is left untouched."""
        async with self._write_lock(user_id):
            await self._loaded_snapshot(user_id)
            interval = await self._store.save(
                user_id,
                start_date,
                end_date,
                symptoms=symptoms,
                mood=mood,
                description=description,
            )
            newest = self._snapshots[user_id]
            kept = [p for p in newest.intervals if p.id != interval.id]
            await self._install(user_id, [*kept, interval])
        return interval

    async def update_period(
        self, user_id: str, interval_id: str, **partial: Any
    ) -> PeriodInterval:
        """Apply a partial update.  On ``StoreError`` the snapshot is left untouched."""
        async with self._write_lock(user_id):
            await self._loaded_snapshot(user_id)
            updated = await self._store.update(user_id, interval_id, **partial)
            newest = self._snapshots[user_id]
            await self._install(
                user_id,
                [updated if p.id == interval_id else p for p in newest.intervals],
            )
        return updated

    async def delete_period(self, user_id: str, interval_id: str) -> None:
        """Remove a period.  On ``StoreError`` the snapshot is left untouched."""
        async with self._write_lock(user_id):
            await self._loaded_snapshot(user_id)
            await self._store.delete(user_id, interval_id)
            newest = self._snapshots[user_id]
            await self._install(
                user_id, [p for p in newest.intervals if p.id != interval_id]
            )

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    async def _consult_remote(self, user_id: str) -> RemoteOutcome | None:
        if self._remote is None:
            return None
        try:
            return await asyncio.wait_for(
                self._remote.predict(user_id), timeout=self._remote_timeout
            )
        except asyncio.TimeoutError:
            return RemoteOutcome.failed(
                DegradedReason.remote_timeout,
                f"no response within {self._remote_timeout:.1f}s",
            )
        except Exception as exc:
            logger.exception("Remote predictor raised for user %s", user_id)
            return RemoteOutcome.failed(DegradedReason.remote_error, str(exc))

    def _tag(self, result: PredictionResult, version: int) -> PredictionResult:
        if result.prediction is None:
            return result
        return replace(result, prediction=replace(result.prediction, history_version=version))

    def _local_result(self, snapshot: HistorySnapshot) -> PredictionResult:
        local = self._predictor.predict(snapshot.intervals, version=snapshot.version)
        return PredictionResult.ok(local)

    async def predict(self, user_id: str) -> PredictionResult:
        """Compute the merged prediction for the current snapshot.

        Returns:
            The result for the newest snapshot.  If the history changed while
            the remote call was pending, the late answer is dropped.
        """
        snapshot = await self._ensure_snapshot(user_id)
        local = self._predictor.predict(snapshot.intervals, version=snapshot.version)
        outcome = await self._consult_remote(user_id)
        result = self._tag(
            merge_with_remote_prediction(local, outcome, self._policy),
            snapshot.version,
        )

        if result.is_degraded:
            logger.warning(
                "Prediction for user %s degraded to local (%s): %s",
                user_id,
                result.degraded_reason.value,
                result.detail,
            )

        newest = self._snapshots[user_id]
        if newest.version != snapshot.version:
            logger.info(
                "Discarding prediction for user %s computed on v%d; history is now v%d",
                user_id,
                snapshot.version,
                newest.version,
            )
            accepted = self._results.get(user_id)
            if accepted is not None and accepted[0] == newest.version:
                return accepted[1]
            return self._local_result(newest)

        accepted = self._results.get(user_id)
        if accepted is None or accepted[0] <= snapshot.version:
            self._results[user_id] = (snapshot.version, result)
        return result

    def latest_result(self, user_id: str) -> PredictionResult | None:
        """Newest accepted result, or None if nothing was predicted yet."""
        accepted = self._results.get(user_id)
        return accepted[1] if accepted is not None else None

    def latest_prediction(self, user_id: str) -> Prediction | None:
        result = self.latest_result(user_id)
        return result.prediction if result is not None else None

    async def insights(self, user_id: str, today: date | None = None) -> CycleInsights:
        """Summary figures for the current history and its prediction."""
        result = await self.predict(user_id)
        snapshot = self._snapshots[user_id]
        return build_insights(
            snapshot.intervals,
            result.prediction,
            today=today or date.today(),
            policy=self._policy,
        )
