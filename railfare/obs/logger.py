"""Structured JSON logging to stdout, one line per event."""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from railfare.obs.context import request_id_var, run_id_var


def _redact_chat(value: Any) -> Any:
    s = str(value) if value is not None else ""
    if not s:
        return s
    if len(s) <= 4:
        return "***"
    return f"***{s[-4:]}"


def log_event(event: str, **fields: Any) -> None:
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
        "run_id": run_id_var.get(),
    }
    for k, v in fields.items():
        if k == "chat_id":
            payload[k] = _redact_chat(v)
        else:
            payload[k] = v

    try:
        print(json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str))
    except Exception:
        # Logging must never break an ingestion run
        pass
