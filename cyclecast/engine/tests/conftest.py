"""Shared fixtures for prediction engine tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from cyclecast.engine.base import PeriodInterval
from cyclecast.engine.config_loader import PredictionPolicy, load_prediction_policy


# ---------------------------------------------------------------------------
# Policy fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def policy() -> PredictionPolicy:
    """Load the bundled prediction policy."""
    return load_prediction_policy()


# ---------------------------------------------------------------------------
# History fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def two_periods() -> list[PeriodInterval]:
    """Two 5-day periods 28 days apart."""
    return [
        PeriodInterval.create("1", "2024-01-01", "2024-01-05"),
        PeriodInterval.create("2", "2024-01-29", "2024-02-02"),
    ]


@pytest.fixture
def regular_history() -> list[PeriodInterval]:
    """Four periods, recorded out of order, with 28, 28 and 29-day cycles."""
    return [
        PeriodInterval.create(
            "3", "2024-02-26", "2024-03-01", symptoms=["cramps"], mood="tired"
        ),
        PeriodInterval.create(
            "1", "2024-01-01", "2024-01-05", symptoms=["cramps", "bloating"], mood="tired"
        ),
        PeriodInterval.create("4", "2024-03-26", "2024-03-31", mood="happy"),
        PeriodInterval.create("2", "2024-01-29", "2024-02-02", symptoms=["headache"]),
    ]


# ---------------------------------------------------------------------------
# Mock HTTP clients
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient returning an empty JSON object."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 200
    response.raise_for_status = MagicMock()
    response.json = MagicMock(return_value={})
    client.post = AsyncMock(return_value=response)
    return client
