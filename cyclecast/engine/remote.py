"""Remote enhanced predictor.

The remote predictor is an optional collaborator that may return a
higher-confidence forecast for the same user.  It is consulted through the
``RemotePredictor`` interface, whose ``predict`` never raises: every
failure is reported as a ``RemoteOutcome.failed`` so the engine can fall
back to its local computation.

``SupabaseRemotePredictor`` calls the ``predict_next_period`` Postgres
function through Supabase's PostgREST RPC endpoint::

    POST {supabase_url}/rest/v1/rpc/predict_next_period
    {"user_id": "<uuid>"}

Expected response (object, or a one-row array of the same)::

    {
      "next_period_start": "2024-02-26",
      "next_period_end": "2024-03-01",
      "ovulation_date": "2024-02-12",          # optional
      "fertility_window_start": "2024-02-07",  # optional
      "fertility_window_end": "2024-02-13",    # optional
      "confidence": 0.85,
      "average_cycle_length": 28,              # optional
      "shortest_cycle_length": 27,             # optional
      "longest_cycle_length": 29,              # optional
      "average_period_duration": 4             # optional
    }
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from cyclecast.engine.base import (
    CycleStatistics,
    DateRange,
    Prediction,
    PredictionSource,
)
from cyclecast.engine.config_loader import PredictionPolicy, get_prediction_policy
from cyclecast.engine.merge import DegradedReason, RemoteOutcome
from cyclecast.engine.predictor import compute_ovulation_and_fertility

logger = logging.getLogger("cyclecast.engine.remote")

_RPC_FUNCTION = "predict_next_period"


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------


class RemotePredictionPayload(BaseModel):
    """Validated body of a remote prediction response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    next_period_start: date
    next_period_end: date
    ovulation_date: date | None = None
    fertility_window_start: date | None = None
    fertility_window_end: date | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    average_cycle_length: int | None = Field(default=None, gt=0)
    shortest_cycle_length: int | None = Field(default=None, gt=0)
    longest_cycle_length: int | None = Field(default=None, gt=0)
    average_period_duration: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> RemotePredictionPayload:
        if self.next_period_end < self.next_period_start:
            raise ValueError("next_period_end is before next_period_start")
        start, end = self.fertility_window_start, self.fertility_window_end
        if (start is None) != (end is None):
            raise ValueError("fertility window needs both start and end")
        if start is not None and end is not None and end < start:
            raise ValueError("fertility_window_end is before fertility_window_start")
        return self

    def to_prediction(self, policy: PredictionPolicy | None = None) -> Prediction:
        """Convert to a Prediction, deriving any ovulation fields the remote omitted."""
        ovulation, window = compute_ovulation_and_fertility(
            self.next_period_start, policy
        )
        if self.ovulation_date is not None:
            ovulation = self.ovulation_date
        if self.fertility_window_start is not None and self.fertility_window_end is not None:
            window = DateRange(self.fertility_window_start, self.fertility_window_end)

        return Prediction(
            next_period=DateRange(self.next_period_start, self.next_period_end),
            ovulation_date=ovulation,
            fertility_window=window,
            confidence=self.confidence,
            statistics=CycleStatistics(
                average_cycle_length=self.average_cycle_length,
                shortest_cycle_length=self.shortest_cycle_length,
                longest_cycle_length=self.longest_cycle_length,
                average_period_duration=self.average_period_duration,
            ),
            source=PredictionSource.remote,
        )


def parse_remote_body(
    body: Any, policy: PredictionPolicy | None = None
) -> RemoteOutcome:
    """Turn a decoded JSON body into a RemoteOutcome.

    ``null`` or an empty array means the remote has no prediction.
    """
    if isinstance(body, list):
        body = body[0] if body else None
    if body is None:
        return RemoteOutcome.absent()
    if not isinstance(body, dict):
        return RemoteOutcome.failed(
            DegradedReason.remote_malformed,
            f"expected an object, got {type(body).__name__}",
        )
    try:
        payload = RemotePredictionPayload.model_validate(body)
    except ValidationError as exc:
        return RemoteOutcome.failed(
            DegradedReason.remote_malformed,
            f"{exc.error_count()} validation error(s)",
        )
    return RemoteOutcome.success(payload.to_prediction(policy))


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class RemotePredictor(ABC):
    """Optional higher-accuracy predictor consulted by the service.

    Implementations must not raise from ``predict``; every failure is
    returned as ``RemoteOutcome.failed``.
    """

    SOURCE_ID: str = ""

    @abstractmethod
    async def predict(self, user_id: str) -> RemoteOutcome:
        """Fetch a prediction for ``user_id``."""
        ...


# ---------------------------------------------------------------------------
# Supabase RPC adapter
# ---------------------------------------------------------------------------


class SupabaseRemotePredictor(RemotePredictor):
    """Remote predictor backed by a Supabase Postgres function."""

    SOURCE_ID = "supabase"

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        timeout_seconds: float = 5.0,
        policy: PredictionPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            supabase_url:    Project URL, e.g. ``https://xyz.supabase.co``.
            api_key:         Anon (or service) key sent as ``apikey`` and bearer.
            timeout_seconds: Per-request HTTP timeout.
            policy:          Policy used to fill in omitted ovulation fields.
            http_client:     Optional pre-configured httpx client (for testing).
        """
        self._base_url = supabase_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._policy = policy or get_prediction_policy()
        self._http_client = http_client

    @property
    def rpc_url(self) -> str:
        return f"{self._base_url}/rest/v1/rpc/{_RPC_FUNCTION}"

    def _build_headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _post(self, payload: dict) -> Any:
        """POST to the RPC endpoint and return the decoded JSON body.

        Raises:
            httpx.HTTPError: On transport errors and non-2xx responses.
            ValueError:      If the body is not JSON.
        """
        headers = self._build_headers()

        if self._http_client:
            response = await self._http_client.post(
                self.rpc_url, json=payload, headers=headers, timeout=self._timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.rpc_url, json=payload, headers=headers)

        response.raise_for_status()
        return response.json()

    async def predict(self, user_id: str) -> RemoteOutcome:
        try:
            body = await self._post({"user_id": str(user_id)})
        except httpx.TimeoutException as exc:
            logger.warning("Remote prediction timed out for user %s: %s", user_id, exc)
            return RemoteOutcome.failed(DegradedReason.remote_timeout, str(exc))
        except httpx.HTTPError as exc:
            logger.warning("Remote prediction failed for user %s: %s", user_id, exc)
            return RemoteOutcome.failed(DegradedReason.remote_error, str(exc))
        except ValueError as exc:
            logger.warning("Remote prediction returned non-JSON for user %s", user_id)
            return RemoteOutcome.failed(DegradedReason.remote_malformed, str(exc))

        outcome = parse_remote_body(body, self._policy)
        if outcome.failure is not None:
            logger.warning(
                "Remote prediction rejected for user %s: %s", user_id, outcome.detail
            )
        return outcome
