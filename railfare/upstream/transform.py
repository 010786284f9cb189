from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from railfare.obs.logger import log_event
from railfare.types import RawFare


def parse_tariff(value: Any) -> Optional[int]:
    # Tariffs arrive as numbers or strings like "1 290" / "1290,50"
    if value is None:
        return None
    s = str(value).replace("\xa0", "").replace(" ", "").replace(",", ".")
    try:
        return int(round(float(s)))
    except (ValueError, OverflowError):
        return None


def fare_from_item(item: Dict[str, Any]) -> Optional[RawFare]:
    cars = item.get("cars") or []
    price = parse_tariff(cars[0].get("tariff")) if cars else None
    if price is None:
        return None
    try:
        return RawFare(
            origin_station=item["station0"],
            destination_station=item["station1"],
            departure_date=item["date0"],
            departure_time=item["time0"],
            brand=item.get("brand") or "",
            price=price,
        )
    except (KeyError, ValidationError):
        return None


def from_rzd(json_obj: Dict[str, Any]) -> List[RawFare]:
    """Flatten the outbound and return lists under ``tp`` into RawFares."""
    items: List[Dict[str, Any]] = []
    for part in (json_obj.get("tp") or [])[:2]:
        items.extend(part.get("list") or [])

    fares = []
    skipped = 0
    for item in items:
        fare = fare_from_item(item)
        if fare is None:
            skipped += 1
            continue
        fares.append(fare)
    if skipped:
        log_event("fares_skipped", level="WARNING", skipped=skipped, total=len(items))
    return fares
