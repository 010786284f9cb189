"""Reduce raw fares to the cheapest-fare grid and pair it into round trips.

Grid cells are keyed by (date, direction, band). Outbound legs come from the
early-morning, morning and daytime bands; the matching return leg departs the
next calendar day in the reverse direction during the evening band.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from railfare.errors import EmptyIndex
from railfare.index.filter import cell_predicate, filter_fares
from railfare.obs.logger import log_event
from railfare.routes import ALL_DIRECTIONS, Direction
from railfare.types import (
    IndexedFareEntry,
    OUTBOUND_BANDS,
    RETURN_BAND,
    RawFare,
    RoundTrip,
    TimeBand,
)

GridKey = Tuple[date, Direction, TimeBand]


def extract_dates(fares: Iterable[RawFare]) -> List[date]:
    return sorted({f.day for f in fares})


def build_grid(
    fares: Sequence[RawFare],
    directions: Sequence[Direction] = ALL_DIRECTIONS,
) -> Dict[GridKey, IndexedFareEntry]:
    """Cheapest fare per (date, direction, band). On equal prices the first fare wins."""
    by_day: Dict[date, List[RawFare]] = defaultdict(list)
    for fare in fares:
        by_day[fare.day].append(fare)

    grid: Dict[GridKey, IndexedFareEntry] = {}
    for day in sorted(by_day):
        for direction in directions:
            for band in TimeBand:
                cell = filter_fares(by_day[day], cell_predicate(day, direction, band))
                if not cell:
                    continue
                cheapest = min(cell, key=lambda f: f.price)
                grid[(day, direction, band)] = IndexedFareEntry(
                    date=day,
                    direction=direction,
                    band=band,
                    departure=cheapest.departure,
                    price=cheapest.price,
                    fare=cheapest,
                )
    return grid


def pair_round_trips(grid: Dict[GridKey, IndexedFareEntry], last_date: date) -> List[RoundTrip]:
    round_trips: List[RoundTrip] = []
    omitted: List[str] = []
    for (day, direction, band), outbound in sorted(grid.items(), key=lambda kv: kv[1].departure):
        if band not in OUTBOUND_BANDS or day >= last_date:
            continue
        inbound = grid.get((day + timedelta(days=1), direction.reverse(), RETURN_BAND))
        if inbound is None:
            omitted.append(f"{day.isoformat()}:{direction.key}:{band.value}")
            continue
        round_trips.append(RoundTrip.pair(outbound, inbound))

    if omitted:
        log_event("roundtrips_omitted", level="DEBUG", count=len(omitted), cells=omitted)
    return round_trips


def build_index(fares: Iterable[RawFare]) -> List[RoundTrip]:
    """Raises EmptyIndex when no round trip can be built; callers keep the prior index then."""
    fares = list(fares)
    dates = extract_dates(fares)
    if not dates:
        raise EmptyIndex(fare_count=0)

    grid = build_grid(fares)
    round_trips = pair_round_trips(grid, last_date=dates[-1])
    log_event(
        "index_built",
        fares=len(fares),
        dates=len(dates),
        grid_cells=len(grid),
        roundtrips=len(round_trips),
    )
    if not round_trips:
        raise EmptyIndex(fare_count=len(fares))
    return round_trips
