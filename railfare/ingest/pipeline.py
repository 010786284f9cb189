"""Command line entry point for ingestion.

Usage patterns:

1. One run (fetch, persist, reindex):
   railfare-collect

2. Periodic runs; a run always finishes before the next one starts:
   railfare-collect --every-minutes 20

3. Maintenance on stored fares only:
   railfare-collect --reindex
   railfare-collect --check-integrity
"""
import argparse
import asyncio
import time
from typing import Optional, Sequence

import schedule

from railfare.config import MIN_COLLECT_INTERVAL_MINUTES, settings
from railfare.errors import IngestionError
from railfare.ingest.collector import Collector
from railfare.obs.logger import log_event
from railfare.storage.document_store import create_document_store


def run_once(collector: Collector) -> bool:
    try:
        asyncio.run(collector.collect())
        return True
    except IngestionError as e:
        # Prior fares and index are still served
        log_event("run_aborted", level="ERROR", kind=type(e).__name__, error=str(e))
        return False
    except Exception as e:
        # Keep the scheduler loop alive; the next run starts from stored state
        log_event("run_aborted", level="ERROR", kind=type(e).__name__, error=str(e), unexpected=True)
        return False


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Collect high-speed rail fares and rebuild the round-trip index")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--reindex", action="store_true", help="Rebuild the index from stored fares only")
    mode.add_argument("--check-integrity", action="store_true",
                      help="Report window dates missing from stored fares")
    mode.add_argument("--every-minutes", type=int, metavar="N", nargs="?", default=None,
                      const=settings.COLLECT_INTERVAL_MINUTES,
                      help=f"Run every N minutes (N >= {MIN_COLLECT_INTERVAL_MINUTES}, "
                           f"default {settings.COLLECT_INTERVAL_MINUTES})")
    p.add_argument("--redis-url", default=None, help=f"Document store URL (default {settings.REDIS_URL})")
    p.add_argument("--window-days", type=int, default=None)
    return p


def main_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.every_minutes is not None and args.every_minutes < MIN_COLLECT_INTERVAL_MINUTES:
        parser.error(f"--every-minutes must be at least {MIN_COLLECT_INTERVAL_MINUTES}")

    collector = Collector(create_document_store(args.redis_url), window_days=args.window_days)

    if args.reindex:
        try:
            collector.reindex()
        except IngestionError as e:
            log_event("reindex_failed", level="ERROR", error=str(e))
            return 1
        return 0

    if args.check_integrity:
        return 1 if collector.check_integrity() else 0

    if args.every_minutes is None:
        return 0 if run_once(collector) else 1

    log_event("scheduler_started", every_minutes=args.every_minutes)
    # schedule runs jobs one at a time on this thread, so runs cannot overlap
    schedule.every(args.every_minutes).minutes.do(run_once, collector)
    run_once(collector)
    while True:
        schedule.run_pending()
        time.sleep(1)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main_cli())
