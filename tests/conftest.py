import os
import sys
import asyncio
import inspect
from datetime import date, datetime

import pytest

# Ensure project root is on sys.path so `import railfare` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Settings are read on first import; keep tests off Redis and fast
os.environ["REDIS_URL"] = "memory://"
os.environ["SETTLE_DELAY_SECONDS"] = "0"

from railfare.routes import Direction, to_moscow  # noqa: E402
from railfare.storage.document_store import InMemoryDocumentStore  # noqa: E402
from railfare.types import IndexedFareEntry, RawFare, RoundTrip  # noqa: E402
from railfare.utils.dates import band_for_hour  # noqa: E402


def pytest_pyfunc_call(pyfuncitem):
    """Allow running async tests without pytest-asyncio.

    If the test function is a coroutine, run it in a fresh event loop.
    """
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        funcargs = pyfuncitem.funcargs
        sig = inspect.signature(testfunction)
        # Filter only the parameters that the test function expects
        allowed = {name: funcargs[name] for name in sig.parameters.keys() if name in funcargs}
        asyncio.run(testfunction(**allowed))
        return True
    return None


def _fare(direction: Direction, day: date, time: str, price: int, brand: str = "САПСАН") -> RawFare:
    return RawFare(
        origin_station=direction.origin.name,
        destination_station=direction.destination.name,
        departure_date=day.strftime("%d.%m.%Y"),
        departure_time=time,
        brand=brand,
        price=price,
    )


def _entry(direction: Direction, day: date, time: str, price: int) -> IndexedFareEntry:
    fare = _fare(direction, day, time, price)
    departure = datetime.combine(day, datetime.strptime(time, "%H:%M").time())
    return IndexedFareEntry(
        date=day,
        direction=direction,
        band=band_for_hour(departure.hour),
        departure=departure,
        price=price,
        fare=fare,
    )


def _roundtrip(day: date, outbound_price: int, return_price: int,
               direction: Direction = None, time: str = "09:00") -> RoundTrip:
    direction = direction or to_moscow()
    outbound = _entry(direction, day, time, outbound_price)
    inbound = _entry(direction.reverse(), date.fromordinal(day.toordinal() + 1), "19:00", return_price)
    return RoundTrip.pair(outbound, inbound)


@pytest.fixture
def make_fare():
    return _fare


@pytest.fixture
def make_entry():
    return _entry


@pytest.fixture
def make_roundtrip():
    return _roundtrip


@pytest.fixture
def store():
    return InMemoryDocumentStore()
