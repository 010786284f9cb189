"""Per-day fare fetching across the lookup window under a request ceiling.

The window is split into portions of at most ``portion_size`` days. Days of
one portion are fetched concurrently; the next portion starts only after every
request of the current one has settled.
"""

import asyncio
import time
from datetime import date
from typing import Awaitable, Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from railfare.config import settings
from railfare.errors import FareSourceError, MaxAttemptsExceeded
from railfare.index.filter import high_speed_only
from railfare.obs.logger import log_event
from railfare.obs.metrics import inc_counter, record_timing
from railfare.routes import Direction
from railfare.types import RawFare
from railfare.upstream.client import RzdClient
from railfare.utils.dates import today, window_dates


class DayFetchResult(BaseModel):
    """Outcome of one day's fetch: fares on success, the typed error otherwise."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    day: date
    direction_key: str
    fares: List[RawFare] = Field(default_factory=list)
    error: Optional[FareSourceError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class WindowFetchResult(BaseModel):
    direction_key: str
    days: List[DayFetchResult] = Field(default_factory=list)

    @property
    def fares(self) -> List[RawFare]:
        return [f for d in self.days for f in d.fares]

    @property
    def failed_days(self) -> List[DayFetchResult]:
        return [d for d in self.days if not d.ok]


def split_portions(total_days: int, portion_size: int) -> List[int]:
    """Full portions first, then the remainder: 60 days by 25 -> [25, 25, 10]."""
    portions = [portion_size] * (total_days // portion_size)
    if total_days % portion_size:
        portions.append(total_days % portion_size)
    return portions


class RateLimitedFetcher:
    def __init__(
        self,
        client: RzdClient,
        portion_size: Optional[int] = None,
        settle_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        brand: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.portion_size = portion_size or settings.MAX_SIMULTANEOUS_REQUESTS
        self.settle_delay = settings.SETTLE_DELAY_SECONDS if settle_delay is None else settle_delay
        self.max_attempts = settings.MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.brand = brand or settings.RZD_HIGH_SPEED_BRAND
        self._sleep = sleep

    async def fetch_day(self, direction: Direction, day: date) -> Tuple[List[RawFare], int]:
        """Fetch one day's high-speed fares; returns (fares, attempts used).

        An empty listing means the token went stale, not that the day has no
        trains: credentials are re-acquired up to ``max_attempts`` times.
        """
        last_error: Optional[FareSourceError] = None
        attempt = 0
        while attempt <= self.max_attempts:
            attempt += 1
            try:
                credentials = await self.client.acquire(direction, day)
                await self._sleep(self.settle_delay)
                fares = await self.client.list_fares(direction, day, credentials)
            except FareSourceError as e:
                last_error = e
                inc_counter("day_fetch_errors_total", {"kind": type(e).__name__})
                log_event("day_fetch_error", level="WARNING", day=day.isoformat(),
                          direction=direction.key, attempt=attempt, error=str(e))
                continue

            if fares:
                relevant = high_speed_only(fares, self.brand)
                if not relevant:
                    log_event("fares_filtered_out", level="WARNING", day=day.isoformat(),
                              direction=direction.key, fetched=len(fares))
                return relevant, attempt

            last_error = None
            inc_counter("stale_tokens_total")
            log_event("stale_token", level="WARNING", day=day.isoformat(),
                      direction=direction.key, attempt=attempt)

        if last_error is not None:
            raise last_error
        raise MaxAttemptsExceeded(day, direction.key, attempt)

    async def _fetch_day_result(self, direction: Direction, day: date) -> DayFetchResult:
        start = time.monotonic()
        try:
            fares, attempts = await self.fetch_day(direction, day)
        except FareSourceError as e:
            inc_counter("day_fetches_total", {"outcome": "failed"})
            log_event("day_fetch_failed", level="ERROR", day=day.isoformat(),
                      direction=direction.key, error=str(e), kind=type(e).__name__)
            return DayFetchResult(day=day, direction_key=direction.key, error=e,
                                  attempts=getattr(e, "attempts", self.max_attempts + 1))
        finally:
            record_timing("day_fetch_ms", (time.monotonic() - start) * 1000.0)
        inc_counter("day_fetches_total", {"outcome": "ok"})
        return DayFetchResult(day=day, direction_key=direction.key, fares=fares, attempts=attempts)

    async def fetch_window(self, direction: Direction, window_days: Optional[int] = None,
                           start: Optional[date] = None) -> WindowFetchResult:
        window_days = window_days or settings.LOOKUP_WINDOW_DAYS
        dates = window_dates(start or today(), window_days)
        result = WindowFetchResult(direction_key=direction.key)

        offset = 0
        for index, size in enumerate(split_portions(window_days, self.portion_size)):
            portion = dates[offset:offset + size]
            offset += size
            settled = await asyncio.gather(
                *(self._fetch_day_result(direction, d) for d in portion),
                return_exceptions=True,
            )
            # Anything that is not a DayFetchResult is a bug, surface it once the portion settled
            for item in settled:
                if isinstance(item, BaseException):
                    raise item
            result.days.extend(settled)
            log_event(
                "portion_fetched",
                portion=index,
                days=len(portion),
                first_day=portion[0].isoformat(),
                fares=sum(len(d.fares) for d in settled),
                failed=sum(1 for d in settled if not d.ok),
            )
        return result
