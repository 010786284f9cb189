"""Predicate matching over raw fares.

Used after each day fetch (brand only) and by the indexer, once per
(date, direction, band) cell.
"""

from datetime import date
from typing import Iterable, List, Optional

from railfare.config import settings
from railfare.routes import Direction
from railfare.types import FarePredicate, RawFare, TimeBand


def matches(fare: RawFare, predicate: FarePredicate) -> bool:
    """True when every clause set on the predicate holds for the fare."""
    if predicate.brand is not None and fare.brand != predicate.brand:
        return False
    if predicate.origin_station is not None and fare.origin_station != predicate.origin_station:
        return False
    if predicate.day is not None and fare.day != predicate.day:
        return False
    if predicate.band is not None:
        start, end = predicate.band.hours
        if not start <= fare.departure.hour < end:
            return False
    return True


def filter_fares(fares: Iterable[RawFare], predicate: FarePredicate) -> List[RawFare]:
    return [f for f in fares if matches(f, predicate)]


def cell_predicate(day: date, direction: Direction, band: TimeBand) -> FarePredicate:
    return FarePredicate(origin_station=direction.origin.name, day=day, band=band)


def high_speed_only(fares: Iterable[RawFare], brand: Optional[str] = None) -> List[RawFare]:
    return filter_fares(fares, FarePredicate(brand=brand or settings.RZD_HIGH_SPEED_BRAND))
