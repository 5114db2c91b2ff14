"""Pytest configuration and fixtures."""

import json
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from trendledger.config import Settings
from trendledger.services import metadata_updater
from trendledger.services.metadata_store import MetadataStore
from trendledger.services.points_ledger import PointsLedger
from trendledger.services.trend_source import HttpTrendSource
from trendledger.services.withdrawal import WithdrawalCoordinator


@pytest.fixture
def now() -> datetime:
    """A fixed reference time for decay and retention tests."""
    return datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def deployments_file(tmp_path: Path) -> Path:
    """A deployments file with three markets."""
    path = tmp_path / "deployments.json"
    path.write_text(
        json.dumps(
            {
                "markets": [
                    {"address": "0xaaa", "question": "Will Bitcoin close above $100k this week?"},
                    {"address": "0xbbb", "question": "Will the Monad mainnet launch on time?"},
                    {"address": "0xccc", "question": "Will it snow in Lisbon tomorrow?"},
                ]
            }
        )
    )
    return path


@pytest.fixture
def settings(tmp_db_path: Path, deployments_file: Path) -> Settings:
    return Settings(
        _env_file=None,
        db_path=tmp_db_path,
        deployments_file=deployments_file,
        trend_source_url=None,
        enable_scheduler=False,
    )


@pytest.fixture
def store(tmp_db_path: Path) -> MetadataStore:
    return MetadataStore(tmp_db_path)


@pytest.fixture
def ledger(tmp_db_path: Path) -> PointsLedger:
    return PointsLedger(tmp_db_path)


@pytest.fixture
def coordinator(ledger: PointsLedger) -> WithdrawalCoordinator:
    return WithdrawalCoordinator(ledger)


@pytest.fixture
def http_trend_sources(monkeypatch) -> list[HttpTrendSource]:
    """Make the updater use an HTTP trend source backed by a mock transport.

    Returns the list of sources created, so tests can check they were closed.
    """
    created = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"topic": "Bitcoin Price Surge", "score": 95}])

    def make_source(settings: Settings) -> HttpTrendSource:
        source = HttpTrendSource(
            "http://trends.test/feed",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        created.append(source)
        return source

    monkeypatch.setattr(metadata_updater, "get_trend_source", make_source)
    return created
