"""Context ids attached to every logged event.

``request_id`` is set per HTTP request by the middleware, ``run_id`` per
ingestion run by the collector.
"""

from contextvars import ContextVar
from typing import Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
