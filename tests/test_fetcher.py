import asyncio
from datetime import date, timedelta

import pytest

from railfare.errors import MaxAttemptsExceeded, UpstreamUnavailable
from railfare.ingest.fetcher import RateLimitedFetcher, split_portions
from railfare.routes import to_moscow
from railfare.types import Credentials


START = date(2024, 3, 1)


class FakeClient:
    """Scripted upstream: per-day queue of listings (lists of fares or exceptions)."""

    def __init__(self, make_fare, script=None, default_price=1000):
        self.make_fare = make_fare
        self.script = {d: list(v) for d, v in (script or {}).items()}
        self.default_price = default_price
        self.acquired = []
        self.listed = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def acquire(self, direction, day):
        self.acquired.append(day)
        return Credentials(token=f"rid-{day.isoformat()}-{len(self.acquired)}")

    async def list_fares(self, direction, day, credentials):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self.listed.append(day)
            queue = self.script.get(day)
            outcome = queue.pop(0) if queue else None
            if isinstance(outcome, Exception):
                raise outcome
            if outcome is not None:
                return outcome
            return [
                self.make_fare(direction, day, "09:00", self.default_price),
                self.make_fare(direction, day, "10:00", 800, brand="ЛАСТОЧКА"),
            ]
        finally:
            self.in_flight -= 1


async def no_sleep(_):
    return None


def test_split_portions():
    assert split_portions(60, 25) == [25, 25, 10]
    assert split_portions(60, 30) == [30, 30]
    assert split_portions(3, 30) == [3]


async def test_fetch_day_filters_brand(make_fare):
    client = FakeClient(make_fare)
    fetcher = RateLimitedFetcher(client, portion_size=5, settle_delay=0, max_attempts=2, sleep=no_sleep)
    fares, attempts = await fetcher.fetch_day(to_moscow(), START)
    assert attempts == 1
    assert [f.brand for f in fares] == ["САПСАН"]


async def test_stale_token_reacquires_credentials(make_fare):
    client = FakeClient(make_fare, script={START: [[], []]})
    fetcher = RateLimitedFetcher(client, portion_size=5, settle_delay=0, max_attempts=2, sleep=no_sleep)
    fares, attempts = await fetcher.fetch_day(to_moscow(), START)
    assert attempts == 3
    assert len(fares) == 1
    assert client.acquired == [START] * 3


async def test_settle_delay_between_acquire_and_listing(make_fare):
    calls = []

    class RecordingClient(FakeClient):
        async def acquire(self, direction, day):
            calls.append("acquire")
            return await super().acquire(direction, day)

        async def list_fares(self, direction, day, credentials):
            calls.append("list")
            return await super().list_fares(direction, day, credentials)

    async def sleep(seconds):
        calls.append(("sleep", seconds))

    fetcher = RateLimitedFetcher(RecordingClient(make_fare), portion_size=5, settle_delay=10,
                                 max_attempts=0, sleep=sleep)
    await fetcher.fetch_day(to_moscow(), START)
    assert calls == ["acquire", ("sleep", 10), "list"]


async def test_three_empty_listings_fail_only_that_day(make_fare):
    bad_day = START + timedelta(days=1)
    client = FakeClient(make_fare, script={bad_day: [[], [], []]})
    fetcher = RateLimitedFetcher(client, portion_size=3, settle_delay=0, max_attempts=2, sleep=no_sleep)

    result = await fetcher.fetch_window(to_moscow(), window_days=3, start=START)

    assert [d.day for d in result.days] == [START, bad_day, START + timedelta(days=2)]
    failed = result.failed_days
    assert [d.day for d in failed] == [bad_day]
    assert isinstance(failed[0].error, MaxAttemptsExceeded)
    assert failed[0].attempts == 3
    assert len(result.fares) == 2


async def test_transport_errors_share_the_attempt_budget(make_fare):
    boom = UpstreamUnavailable("Upstream returned HTTP 503", status_code=503)
    client = FakeClient(make_fare, script={START: [boom, boom]})
    fetcher = RateLimitedFetcher(client, portion_size=5, settle_delay=0, max_attempts=1, sleep=no_sleep)
    with pytest.raises(UpstreamUnavailable):
        await fetcher.fetch_day(to_moscow(), START)


async def test_portions_run_strictly_in_sequence(make_fare):
    client = FakeClient(make_fare)
    fetcher = RateLimitedFetcher(client, portion_size=4, settle_delay=0, max_attempts=0, sleep=no_sleep)

    result = await fetcher.fetch_window(to_moscow(), window_days=10, start=START)

    assert len(result.days) == 10
    assert client.max_in_flight == 4
    # every day of a portion is listed before any day of the next one
    portion_of = {START + timedelta(days=i): i // 4 for i in range(10)}
    seen = [portion_of[d] for d in client.listed]
    assert seen == sorted(seen)


async def test_settle_delay_of_one_day_does_not_hold_its_siblings(make_fare):
    gate = asyncio.Event()
    sleeps = []

    async def sleep(seconds):
        sleeps.append(seconds)
        # only the first day of the portion waits on the gate
        if len(sleeps) == 1:
            await gate.wait()

    client = FakeClient(make_fare)
    fetcher = RateLimitedFetcher(client, portion_size=4, settle_delay=10, max_attempts=0, sleep=sleep)
    task = asyncio.create_task(fetcher.fetch_window(to_moscow(), window_days=4, start=START))

    for _ in range(50):
        if len(client.listed) == 3:
            break
        await asyncio.sleep(0)

    assert sorted(client.listed) == [START + timedelta(days=i) for i in range(1, 4)]
    assert not task.done()

    gate.set()
    result = await task
    assert client.listed[-1] == START
    assert len(result.fares) == 4
