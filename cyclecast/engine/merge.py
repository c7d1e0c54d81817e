"""Merge a local prediction with the remote enhanced predictor's answer.

``merge_with_remote_prediction`` is a pure decision function: given the
local prediction and whatever the remote returned (or the reason it did
not), it picks one ``Prediction`` and reports whether the result is
degraded.  It does not log; callers decide how to surface degradation.

Decision table (threshold from the prediction policy, 0.7 by default)::

    remote outcome                  result
    ------------------------------  -------------------------------------------
    ok, confidence > threshold      remote prediction, unchanged
    ok, floor <= confidence <= thr  local dates/stats, remote confidence shown
    ok, no/low confidence           local with heuristic confidence
    absent (no remote configured)   local with heuristic confidence
    failed (error/timeout/bad data) local with heuristic confidence, degraded
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from cyclecast.engine.base import Prediction
from cyclecast.engine.config_loader import PredictionPolicy, get_prediction_policy


class DegradedReason(str, Enum):
    remote_error = "remote_error"
    remote_timeout = "remote_timeout"
    remote_malformed = "remote_malformed"


@dataclass(frozen=True)
class RemoteOutcome:
    """What the remote predictor produced for one request.

    Exactly one of three shapes:

    - ``success``: ``prediction`` set, ``failure`` None.
    - ``absent``:  both None (no remote configured, or it had no answer).
    - ``failed``:  ``failure`` set, ``detail`` describes the error.
    """

    prediction: Prediction | None = None
    failure: DegradedReason | None = None
    detail: str | None = None

    @classmethod
    def success(cls, prediction: Prediction) -> RemoteOutcome:
        return cls(prediction=prediction)

    @classmethod
    def absent(cls) -> RemoteOutcome:
        return cls()

    @classmethod
    def failed(cls, reason: DegradedReason, detail: str | None = None) -> RemoteOutcome:
        return cls(failure=reason, detail=detail)

    @property
    def ok(self) -> bool:
        return self.prediction is not None and self.failure is None


@dataclass(frozen=True)
class PredictionResult:
    """Merged prediction plus its health.

    Attributes:
        prediction:      The chosen prediction, or None for insufficient data.
        degraded_reason: Set when the remote failed and local was used instead.
        detail:          Human-readable failure detail for diagnostics.
    """

    prediction: Prediction | None
    degraded_reason: DegradedReason | None = None
    detail: str | None = None

    @classmethod
    def ok(cls, prediction: Prediction | None) -> PredictionResult:
        return cls(prediction=prediction)

    @classmethod
    def degraded(
        cls,
        prediction: Prediction | None,
        reason: DegradedReason,
        detail: str | None = None,
    ) -> PredictionResult:
        return cls(prediction=prediction, degraded_reason=reason, detail=detail)

    @property
    def is_degraded(self) -> bool:
        return self.degraded_reason is not None

    @property
    def has_prediction(self) -> bool:
        return self.prediction is not None and self.prediction.next_period is not None


def remote_is_preferred(
    remote: Prediction | None,
    policy: PredictionPolicy | None = None,
) -> bool:
    """True if ``remote`` is confident enough to replace the local prediction."""
    policy = policy or get_prediction_policy()
    return (
        remote is not None
        and remote.next_period is not None
        and remote.confidence is not None
        and remote.confidence > policy.remote_confidence_threshold
    )


def merge_with_remote_prediction(
    local: Prediction | None,
    remote: RemoteOutcome | None,
    policy: PredictionPolicy | None = None,
) -> PredictionResult:
    """Choose between the local prediction and the remote outcome.

    Args:
        local:  Local prediction (heuristic confidence), or None for
                insufficient data.
        remote: Remote outcome, or None if no remote was consulted.
        policy: Prediction policy; defaults to the global one.

    Returns:
        The merged PredictionResult.  Calling again with the same inputs
        returns an equal result.
    """
    policy = policy or get_prediction_policy()

    if remote is None:
        return PredictionResult.ok(local)

    if remote.failure is not None:
        return PredictionResult.degraded(local, remote.failure, remote.detail)

    candidate = remote.prediction
    if remote_is_preferred(candidate, policy):
        return PredictionResult.ok(candidate)

    if local is None:
        return PredictionResult.ok(None)

    confidence = candidate.confidence if candidate is not None else None
    if confidence is not None and confidence >= policy.remote_confidence_floor:
        # Local dates win; the remote score is kept for display.
        return PredictionResult.ok(replace(local, confidence=confidence))

    return PredictionResult.ok(local)
