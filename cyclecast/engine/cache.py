"""Best-effort local mirror of the period history.

Lets the service predict when the store is unreachable.  The file is JSON
with ISO date strings, one list of intervals per user::

    {
      "users": {
        "<user_id>": [
          {"id": "1706745600000", "startDate": "2024-02-01",
           "endDate": "2024-02-05", "symptoms": ["cramps"], "mood": "tired"}
        ]
      }
    }

The cache is never authoritative.  Write failures are logged and reported
as ``False``; unreadable files and entries are skipped.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cyclecast.engine.base import PeriodInterval

logger = logging.getLogger("cyclecast.engine.cache")


class CachedInterval(BaseModel):
    """Serialized form of one PeriodInterval."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    symptoms: list[str] = Field(default_factory=list)
    mood: str | None = None
    description: str | None = None

    @classmethod
    def from_interval(cls, interval: PeriodInterval) -> CachedInterval:
        return cls(
            id=interval.id,
            start_date=interval.start_date.isoformat() if interval.start_date else "",
            end_date=interval.end_date.isoformat() if interval.end_date else "",
            symptoms=sorted(interval.symptoms),
            mood=interval.mood,
            description=interval.description,
        )

    def to_interval(self) -> PeriodInterval:
        return PeriodInterval.create(
            id=self.id,
            start_date=self.start_date,
            end_date=self.end_date,
            symptoms=self.symptoms,
            mood=self.mood,
            description=self.description,
        )


class LocalSnapshotCache:
    """JSON file mirror of each user's interval list."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, list]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable snapshot cache %s: %s", self._path, exc)
            return {}
        users = raw.get("users") if isinstance(raw, dict) else None
        return users if isinstance(users, dict) else {}

    def read(self, user_id: str) -> list[PeriodInterval]:
        """Cached intervals for ``user_id``; malformed entries are skipped."""
        intervals: list[PeriodInterval] = []
        for entry in self._read_all().get(user_id, []) or []:
            try:
                intervals.append(CachedInterval.model_validate(entry).to_interval())
            except ValidationError:
                logger.debug("Skipping malformed cached interval: %r", entry)
        return intervals

    def write(self, user_id: str, intervals: list[PeriodInterval]) -> bool:
        """Replace the cached list for ``user_id``.  Returns False on failure.

        Safe to call from worker threads; the read-modify-write of the file
        is serialized.
        """
        entries = [
            CachedInterval.from_interval(p).model_dump(by_alias=True) for p in intervals
        ]
        with self._lock:
            users = self._read_all()
            users[user_id] = entries
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
                tmp_path.write_text(json.dumps({"users": users}, indent=2), encoding="utf-8")
                tmp_path.replace(self._path)
            except OSError as exc:
                logger.warning("Could not write snapshot cache %s: %s", self._path, exc)
                return False
        return True
