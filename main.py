import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from railfare.config import settings
from railfare.errors import EmptyIndex, LinkUnavailable
from railfare.formatters.text import format_roundtrip
from railfare.infrastructure.health import HealthChecker
from railfare.ingest.collector import Collector
from railfare.links.deeplink import build_deep_link
from railfare.links.shortener import LinkShortener
from railfare.obs.logger import log_event
from railfare.obs.metrics import get_metrics_snapshot
from railfare.obs.middleware import ObservabilityMiddleware
from railfare.rank.selector import select
from railfare.storage.document_store import create_document_store
from railfare.storage.repository import FareRepository
from railfare.storage.settings import SettingsStore
from railfare.types import QueryConstraint

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_event("startup", env=settings.APP_ENV)

    app.state.store = create_document_store(settings.REDIS_URL)
    app.state.repository = FareRepository(app.state.store)
    app.state.settings_store = SettingsStore(app.state.store)
    app.state.collector = Collector(app.state.store)
    app.state.shortener = LinkShortener(app.state.store)
    app.state.collect_task = None

    yield

    task: Optional[asyncio.Task] = app.state.collect_task
    if task and not task.done():
        task.cancel()
    app.state.shortener.close()
    log_event("shutdown")


api = FastAPI(
    title="Railfare",
    version="1.0.0",
    lifespan=lifespan,
)


async def _run_collection(collector: Collector) -> None:
    try:
        await collector.collect()
    except Exception as e:
        # Nothing awaits this task; the previous index stays in place
        log_event("run_aborted", level="ERROR", kind=type(e).__name__, error=str(e))


@api.get("/")
async def root(request: Request):
    settings_store: SettingsStore = request.app.state.settings_store
    return {
        "service": "railfare",
        "version": "1.0.0",
        "status": "running",
        "lookup_window_days": settings.LOOKUP_WINDOW_DAYS,
        "last_collected_at": settings_store.get_value("last_collected_at"),
        "last_indexed_at": settings_store.get_value("last_indexed_at"),
    }


@api.get("/health")
async def health():
    return {"status": "healthy", "service": "railfare"}


@api.get("/health/detailed")
async def detailed_health(request: Request):
    health_checker = HealthChecker()
    health_checker.register_check("store", request.app.state.store.ping)
    health_checker.register_check("index", lambda: bool(request.app.state.repository.load_round_trips()))

    results = await health_checker.run_checks()
    status_code = 200 if results["status"] == "healthy" else 503
    return JSONResponse(results, status_code=status_code)


@api.get("/metrics")
async def metrics():
    return get_metrics_snapshot()


@api.post("/select")
async def select_roundtrips(request: Request, constraint: QueryConstraint) -> Dict[str, Any]:
    roundtrips = request.app.state.repository.load_round_trips()
    result = select(constraint, roundtrips)
    log_event(
        "select",
        direction=(constraint.direction.key if constraint.direction else None),
        more=constraint.more,
        results=len(result.results),
        message=result.message.kind.value if result.message else None,
    )
    return {
        "results": [
            {"roundtrip": rt.model_dump(mode="json"), "summary": format_roundtrip(rt)}
            for rt in result.results
        ],
        "message": result.message.model_dump(mode="json") if result.message else None,
    }


@api.get("/roundtrips/{roundtrip_id}/link")
def roundtrip_link(request: Request, roundtrip_id: str):
    rt = request.app.state.repository.get_round_trip(roundtrip_id)
    if rt is None:
        raise HTTPException(status_code=404, detail="Unknown round trip")
    long_url = build_deep_link(rt)
    try:
        short_url = request.app.state.shortener.shorten(long_url)
    except LinkUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"id": roundtrip_id, "url": short_url, "long_url": long_url}


@api.post("/admin/collect")
async def trigger_collect(request: Request):
    """Start an ingestion run in the background; runs never overlap."""
    task: Optional[asyncio.Task] = request.app.state.collect_task
    if (task and not task.done()) or request.app.state.collector.running:
        raise HTTPException(status_code=409, detail="An ingestion run is already in progress")
    request.app.state.collect_task = asyncio.create_task(_run_collection(request.app.state.collector))
    return {"status": "collect_started"}


@api.post("/admin/reindex")
def trigger_reindex(request: Request):
    try:
        roundtrips = request.app.state.collector.reindex()
    except EmptyIndex as e:
        return JSONResponse({"status": "index_not_replaced", "error": str(e)}, status_code=422)
    return {"status": "reindexed", "roundtrips": len(roundtrips)}


@api.get("/admin/integrity")
async def integrity(request: Request):
    missing = request.app.state.collector.check_integrity()
    return {"complete": not missing, "missing_dates": [d.isoformat() for d in missing]}


app = ObservabilityMiddleware(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.APP_ENV == "dev",
        log_level="info",
    )
