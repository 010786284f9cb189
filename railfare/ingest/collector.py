"""One ingestion run: fetch the window, sanity-check, persist, reindex.

Nothing persisted is touched until the fetched fares clear the count
threshold, and the round-trip index is only replaced by a non-empty one, so
readers always see the last known-good index.
"""

import asyncio
import uuid
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from railfare.config import settings
from railfare.errors import EmptyIndex, InsufficientFareCount, RunInProgress
from railfare.index.indexer import build_index, extract_dates
from railfare.ingest.fetcher import RateLimitedFetcher, WindowFetchResult
from railfare.obs.context import run_id_var
from railfare.obs.logger import log_event
from railfare.obs.metrics import inc_counter
from railfare.routes import DEFAULT_DIRECTION, Direction
from railfare.storage.document_store import DocumentStore
from railfare.storage.repository import FareRepository
from railfare.storage.settings import SettingsStore
from railfare.types import RawFare, RoundTrip
from railfare.upstream.client import RzdClient
from railfare.utils.dates import today, window_dates


class CollectionReport(BaseModel):
    run_id: str
    fares: int
    failed_days: List[date] = Field(default_factory=list)
    roundtrips: int
    collected_at: datetime


class Collector:
    def __init__(
        self,
        store: DocumentStore,
        client_factory: Callable[[], RzdClient] = RzdClient,
        fetcher_factory: Callable[[RzdClient], RateLimitedFetcher] = RateLimitedFetcher,
        direction: Direction = DEFAULT_DIRECTION,
        window_days: Optional[int] = None,
        min_fare_count: Optional[int] = None,
        today_fn: Callable[[], date] = today,
    ):
        self.repository = FareRepository(store)
        self.settings_store = SettingsStore(store)
        self.client_factory = client_factory
        self.fetcher_factory = fetcher_factory
        # One listing returns both the outbound and the return lists, so a single direction covers both
        self.direction = direction
        self.window_days = window_days or settings.LOOKUP_WINDOW_DAYS
        self.min_fare_count = settings.MIN_FARE_COUNT if min_fare_count is None else min_fare_count
        self.today_fn = today_fn
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def fetch(self) -> WindowFetchResult:
        client = self.client_factory()
        try:
            fetcher = self.fetcher_factory(client)
            return await fetcher.fetch_window(self.direction, self.window_days, start=self.today_fn())
        finally:
            await client.aclose()

    async def collect(self) -> CollectionReport:
        if self._lock.locked():
            raise RunInProgress("An ingestion run is already in progress")
        async with self._lock:
            token = run_id_var.set(uuid.uuid4().hex[:12])
            try:
                return await self._collect()
            except Exception as e:
                inc_counter("ingestion_runs_total", {"outcome": type(e).__name__})
                log_event("collect_failed", level="ERROR", error=str(e), kind=type(e).__name__)
                raise
            finally:
                run_id_var.reset(token)

    async def _collect(self) -> CollectionReport:
        now = datetime.now(timezone.utc)
        log_event("collect_started", direction=self.direction.key, window_days=self.window_days)

        window = await self.fetch()
        fares = window.fares
        if len(fares) < self.min_fare_count or not fares:
            raise InsufficientFareCount(len(fares), self.min_fare_count)

        stamped = [f.model_copy(update={"id": i, "collected_at": now}) for i, f in enumerate(fares, start=1)]
        self.repository.replace_fares(stamped)
        log_event("fares_stored", count=len(stamped), failed_days=len(window.failed_days))

        round_trips = self.reindex(stamped)
        inc_counter("ingestion_runs_total", {"outcome": "ok"})
        report = CollectionReport(
            run_id=run_id_var.get() or "",
            fares=len(stamped),
            failed_days=[d.day for d in window.failed_days],
            roundtrips=len(round_trips),
            collected_at=now,
        )
        self.settings_store.set_value("last_collected_at", now.isoformat())
        log_event("collect_finished", **report.model_dump(mode="json"))
        return report

    def reindex(self, fares: Optional[List[RawFare]] = None) -> List[RoundTrip]:
        """Rebuild the round-trip index from the given (or stored) fares.

        EmptyIndex propagates and the stored index stays as it was.
        """
        if fares is None:
            fares = self.repository.load_fares()
        try:
            round_trips = build_index(fares)
        except EmptyIndex:
            log_event("index_not_replaced", level="WARNING", fares=len(fares))
            raise
        self.repository.replace_round_trips(round_trips)
        self.settings_store.set_value("last_indexed_at", datetime.now(timezone.utc).isoformat())
        log_event("index_replaced", roundtrips=len(round_trips))
        return round_trips

    def check_integrity(self) -> List[date]:
        """Window dates that have no stored fares; logged, never raised."""
        stored = set(extract_dates(self.repository.load_fares()))
        missing = [d for d in window_dates(self.today_fn(), self.window_days) if d not in stored]
        if missing:
            log_event("integrity_missing_dates", level="WARNING",
                      missing=[d.isoformat() for d in missing])
        else:
            log_event("integrity_ok", days=self.window_days)
        return missing
