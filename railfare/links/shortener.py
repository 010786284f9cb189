from typing import Optional

import httpx

from railfare.config import settings
from railfare.errors import LinkUnavailable
from railfare.obs.logger import log_event
from railfare.storage.document_store import CollectionName, DocumentStore


class LinkShortener:
    """Shortens deep links, caching every pair in the urls collection.

    Chat clients re-encode some characters of the long links, which breaks
    them; short links survive.
    """

    def __init__(self, store: DocumentStore, http: Optional[httpx.Client] = None,
                 endpoint: Optional[str] = None, api_key: Optional[str] = None):
        self.store = store
        self.endpoint = endpoint or settings.SHORTENER_URL
        self.api_key = api_key if api_key is not None else settings.SHORTENER_API_KEY
        self._http = http or httpx.Client(
            http2=True,
            timeout=httpx.Timeout(connect=3.0, read=10.0, write=10.0, pool=10.0),
        )

    def cached(self, long_url: str) -> Optional[str]:
        entries = self.store.find(CollectionName.URLS, {"longUrl": long_url})
        return entries[0].get("shortUrl") if entries else None

    def shorten(self, long_url: str) -> str:
        short_url = self.cached(long_url)
        if short_url:
            return short_url

        params = {"key": self.api_key} if self.api_key else None
        try:
            r = self._http.post(self.endpoint, params=params, json={"longUrl": long_url})
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log_event("shorten_failed", level="ERROR", error=str(e))
            raise LinkUnavailable("Unable to shorten the url") from e

        short_url = (body.get("id") or body.get("shortUrl")) if isinstance(body, dict) else None
        if not short_url:
            raise LinkUnavailable("Shortener response carries no url")

        self.store.insert(CollectionName.URLS, [{"shortUrl": short_url, "longUrl": long_url}])
        return short_url

    def close(self) -> None:
        self._http.close()
