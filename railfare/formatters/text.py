from typing import List, Optional

from railfare.types import IndexedFareEntry, RoundTrip, SelectionResult


def format_city(name: str) -> str:
    """САНКТ-ПЕТЕРБУРГ -> Санкт-Петербург"""
    return "-".join(part.capitalize() for part in name.lower().split("-"))


def format_fare(entry: IndexedFareEntry) -> str:
    # Санкт-Петербург → Москва
    # 16 March, departs 5:30
    # 1290 ₽
    fare = entry.fare
    day = f"{entry.departure.day} {entry.departure.strftime('%B')}"
    time = f"{entry.departure.hour}:{entry.departure.minute:02d}"
    return (f"{format_city(fare.origin_station)} → {format_city(fare.destination_station)}\n"
            f"{day}, departs {time}\n"
            f"{entry.price} ₽")


def format_roundtrip(rt: RoundTrip) -> str:
    return "\n\n".join([format_fare(rt.outbound), format_fare(rt.inbound), f"Total: {rt.total_cost} ₽"])


def format_selection(result: SelectionResult, links: Optional[List[Optional[str]]] = None) -> str:
    parts: List[str] = []
    if result.message:
        parts.append(result.message.text)
    for i, rt in enumerate(result.results):
        block = format_roundtrip(rt)
        link = links[i] if links and i < len(links) else None
        if link:
            block += f"\n{link}"
        parts.append(block)
    return "\n\n".join(parts)
