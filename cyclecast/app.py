"""Cyclecast composition root.

Wires settings, prediction policy, store, cache and the optional remote
predictor into a ready ``PredictionService``::

    from cyclecast.app import build_service, configure_logging

    configure_logging()
    service = build_service()
    result = await service.predict(user_id)
"""

from __future__ import annotations

import logging
import sys

from cyclecast.config import Settings, get_settings
from cyclecast.engine.cache import LocalSnapshotCache
from cyclecast.engine.config_loader import get_prediction_policy, load_prediction_policy
from cyclecast.engine.remote import RemotePredictor, SupabaseRemotePredictor
from cyclecast.engine.service import PredictionService
from cyclecast.engine.store import InMemoryPeriodStore, PeriodStore

logger = logging.getLogger("cyclecast")


# ---------- Logging ----------

def configure_logging(settings: Settings | None = None) -> None:
    s = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if s.debug else s.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- Service factory ----------

def build_service(
    settings: Settings | None = None,
    store: PeriodStore | None = None,
    remote: RemotePredictor | None = None,
) -> PredictionService:
    """Build a PredictionService from settings.

    Args:
        settings: Defaults to the cached environment settings.
        store:    Period store; an in-memory store if omitted.
        remote:   Remote predictor override.  When omitted, a Supabase
                  predictor is created only if it is configured.
    """
    s = settings or get_settings()
    policy = (
        load_prediction_policy(s.prediction_policy_path)
        if s.prediction_policy_path
        else get_prediction_policy()
    )

    if remote is None and s.remote_enabled:
        remote = SupabaseRemotePredictor(
            supabase_url=s.supabase_url,
            api_key=s.supabase_anon_key,
            timeout_seconds=s.remote_timeout_seconds,
            policy=policy,
        )

    logger.info(
        "Starting %s v%s [%s] remote=%s policy=v%s",
        s.app_name,
        s.app_version,
        s.environment,
        remote.SOURCE_ID if remote else "off",
        policy.version,
    )
    return PredictionService(
        store=store or InMemoryPeriodStore(),
        remote=remote,
        cache=LocalSnapshotCache(s.snapshot_cache_path),
        policy=policy,
        remote_timeout=s.remote_timeout_seconds,
    )
