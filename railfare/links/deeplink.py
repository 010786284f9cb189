from typing import Dict, Optional
from urllib.parse import urlencode

from railfare.config import settings
from railfare.types import RoundTrip
from railfare.utils.dates import format_upstream_date


def deep_link_params(rt: RoundTrip) -> Dict[str, str]:
    direction = rt.direction
    return {
        "layer_name": "e3-route",
        "tfl": "3",
        "checkSeats": "1",
        "st0": direction.origin.name,
        "code0": str(direction.origin.code),
        "dt0": format_upstream_date(rt.outbound.date),
        "st1": direction.destination.name,
        "code1": str(direction.destination.code),
        "dt1": format_upstream_date(rt.inbound.date),
    }


def build_deep_link(rt: RoundTrip, base_url: Optional[str] = None) -> str:
    """Upstream ticket page pre-filled with the round trip's route and both dates."""
    return f"{base_url or settings.RZD_DEEPLINK_URL}?{urlencode(deep_link_params(rt))}"
