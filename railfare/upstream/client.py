from datetime import date
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Dict, Iterable, List, Optional

import httpx

from railfare.config import settings
from railfare.errors import CredentialParseError, UpstreamUnavailable
from railfare.routes import Direction
from railfare.types import Credentials, RawFare, SessionCookie
from railfare.upstream.transform import from_rzd
from railfare.utils.dates import format_upstream_date

SESSION_COOKIE_NAME = "JSESSIONID"


def build_query_params(direction: Direction, day: date,
                       return_day: Optional[date] = None,
                       token: Optional[str] = None) -> Dict[str, str]:
    """Query string of the timetable endpoint; ``rid`` is added once a token is known."""
    params = {
        "STRUCTURE_ID": settings.RZD_STRUCTURE_ID,
        "layer_id": settings.RZD_LAYER_ID,
        "dir": "1",
        "tfl": "3",
        "checkSeats": "1",
        "st0": direction.origin.name,
        "code0": str(direction.origin.code),
        "dt0": format_upstream_date(day),
        "st1": direction.destination.name,
        "code1": str(direction.destination.code),
        "dt1": format_upstream_date(return_day or day),
    }
    if token:
        params["rid"] = token
    return params


def parse_session_cookie(set_cookie_headers: Iterable[str]) -> Optional[SessionCookie]:
    """Pick the session cookie out of Set-Cookie values.

    e.g. ``JSESSIONID=00004ADS7pUenJiasDpQq4maKIR:17obq8rib; Path=/``
    """
    for header in set_cookie_headers:
        if SESSION_COOKIE_NAME not in header:
            continue
        name, _, value = header.split(";", 1)[0].strip().partition("=")
        if name and value:
            return SessionCookie(name=name, value=value)
    return None


class RzdClient:
    """Session handle for one ingestion run.

    Every call is independent; credentials are passed in explicitly rather
    than kept on the client, so concurrent day fetches never share a token.
    """

    def __init__(self, http: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self.base_url = base_url or settings.RZD_BASE_URL
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS, connect=5.0),
            # Each day fetch replays its own session cookie, nothing is kept between requests
            cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
        )

    async def __aenter__(self) -> "RzdClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _get(self, params: Dict[str, str], headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        try:
            r = await self._http.get(self.base_url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{type(e).__name__}: {e}") from e
        if r.status_code != 200:
            raise UpstreamUnavailable(f"Upstream returned HTTP {r.status_code}", status_code=r.status_code)
        return r

    async def acquire(self, direction: Direction, day: date) -> Credentials:
        r = await self._get(build_query_params(direction, day))
        try:
            body: Any = r.json()
        except ValueError as e:
            raise CredentialParseError("Credential response is not JSON") from e
        token = body.get("rid") if isinstance(body, dict) else None
        if not token:
            raise CredentialParseError("Credential response carries no token")
        return Credentials(
            token=str(token),
            session_cookie=parse_session_cookie(r.headers.get_list("set-cookie")),
        )

    async def list_fares(self, direction: Direction, day: date, credentials: Credentials) -> List[RawFare]:
        headers = {}
        # Setting the cookie through a cookie jar is ignored upstream
        if credentials.cookie_header:
            headers["Cookie"] = credentials.cookie_header
        r = await self._get(build_query_params(direction, day, token=credentials.token), headers=headers)
        try:
            body = r.json()
        except ValueError as e:
            raise UpstreamUnavailable("Fare listing is not JSON") from e
        if not isinstance(body, dict):
            return []
        return from_rzd(body)
