from datetime import timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from railfare.config import MIN_COLLECT_INTERVAL_MINUTES, Settings
from railfare.errors import InsufficientFareCount
from railfare.ingest import pipeline
from railfare.routes import to_moscow, to_spb
from railfare.storage.document_store import InMemoryDocumentStore
from railfare.storage.repository import FareRepository
from railfare.utils.dates import today


def test_interval_below_minimum_is_rejected():
    with pytest.raises(ValidationError):
        Settings(COLLECT_INTERVAL_MINUTES=MIN_COLLECT_INTERVAL_MINUTES - 1)
    assert Settings(COLLECT_INTERVAL_MINUTES=MIN_COLLECT_INTERVAL_MINUTES).COLLECT_INTERVAL_MINUTES == 15


def test_parser_modes_are_exclusive():
    parser = pipeline.build_arg_parser()
    assert parser.parse_args(["--every-minutes"]).every_minutes == pipeline.settings.COLLECT_INTERVAL_MINUTES
    with pytest.raises(SystemExit):
        parser.parse_args(["--reindex", "--check-integrity"])


def test_cli_rejects_short_interval():
    with pytest.raises(SystemExit):
        pipeline.main_cli(["--every-minutes", "5", "--redis-url", "memory://"])


def test_run_once_swallows_aborted_runs():
    class Failing:
        async def collect(self):
            raise InsufficientFareCount(3, 500)

    assert pipeline.run_once(Failing()) is False


def test_cli_reindex_and_integrity(make_fare):
    store = InMemoryDocumentStore()
    start = today()
    FareRepository(store).replace_fares([
        make_fare(to_moscow(), start, "09:00", 1000),
        make_fare(to_spb(), start + timedelta(days=1), "19:00", 500),
    ])

    with patch.object(pipeline, "create_document_store", return_value=store):
        assert pipeline.main_cli(["--reindex"]) == 0
        assert len(FareRepository(store).load_round_trips()) == 1
        assert pipeline.main_cli(["--check-integrity", "--window-days", "2"]) == 0
        assert pipeline.main_cli(["--check-integrity", "--window-days", "3"]) == 1


def test_cli_reindex_without_fares_fails():
    with patch.object(pipeline, "create_document_store", return_value=InMemoryDocumentStore()):
        assert pipeline.main_cli(["--reindex"]) == 1


def test_run_once_keeps_the_scheduler_alive_on_unexpected_errors():
    class Broken:
        async def collect(self):
            raise RuntimeError("redis write failed")

    assert pipeline.run_once(Broken()) is False
