import asyncio
import inspect
import time
from datetime import datetime
from typing import Any, Callable, Dict, Tuple


class HealthChecker:
    """Runs named checks (sync or async callables returning truthy when healthy)."""

    def __init__(self):
        self.checks: Dict[str, Callable[[], Any]] = {}

    def register_check(self, name: str, check_func: Callable[[], Any]) -> None:
        self.checks[name] = check_func

    async def run_checks(self) -> Dict[str, Any]:
        pairs = await asyncio.gather(*(self._run_single_check(n, f) for n, f in self.checks.items()))
        results = dict(pairs)
        all_healthy = all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": results,
            "timestamp": datetime.now().isoformat(),
        }

    async def _run_single_check(self, name: str, check_func: Callable[[], Any]) -> Tuple[str, Dict[str, Any]]:
        start = time.monotonic()
        try:
            if inspect.iscoroutinefunction(check_func):
                result = await check_func()
            else:
                result = check_func()
        except Exception as e:
            return name, {"status": "unhealthy", "error": str(e)}
        return name, {
            "status": "healthy" if result else "unhealthy",
            "duration_ms": int((time.monotonic() - start) * 1000),
        }
