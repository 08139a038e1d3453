"""
Health check router.

Liveness says the process is up; readiness says SLO definitions are
loaded and, when enabled, the background evaluator is running.
"""

from fastapi import APIRouter

from budgetgate.core.config import settings
from budgetgate.core.slo import SLOEngineError, get_engine
from budgetgate.core.slo.scheduler import get_scheduler

router = APIRouter()


@router.get("/health")
async def health_check():
    """Back-compat simple health endpoint."""
    return {"status": "ok"}


@router.get("/livez")
async def livez():
    return {"status": "alive"}


@router.get("/healthz")
async def healthz():
    """Readiness probe."""
    try:
        engine = get_engine()
    except SLOEngineError as e:
        return {"status": "degraded", "services": 0, "reason": str(e)}

    services = engine.services()
    body = {"status": "ok" if services else "degraded", "services": len(services)}

    if settings.SCHEDULER_ENABLED:
        scheduler = get_scheduler(engine, settings.EVALUATION_INTERVAL_S)
        body["scheduler"] = {
            "running": scheduler.running,
            "ticks": scheduler.ticks,
            "failing_services": sorted(scheduler.last_errors),
        }
        if not scheduler.running:
            body["status"] = "degraded"
    return body
