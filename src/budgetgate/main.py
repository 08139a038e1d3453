"""
FastAPI application entry point.

Mounts routers and provides minimal health route.
"""

import time

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from budgetgate.core.auth import verify_token
from budgetgate.core.config import settings
from budgetgate.core.metrics import init_metrics, metrics_exposition, observe_request
from budgetgate.core.observability import StructuredLogger, bind_correlation_id, correlation_id_ctx
from budgetgate.core.slo import get_engine
from budgetgate.core.slo.scheduler import get_scheduler
from budgetgate.routers import health, slo

log = StructuredLogger("budgetgate.http")

app = FastAPI(
    title="Error Budget Release Gate",
    description="Error-budget tracking, burn-rate alerting and release gating for SLOs",
    version=settings.VERSION,
)

# Configure rate limiter
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Rate limit exceeded: tell the client when to retry."""
    return Response(
        content='{"detail": "Rate limit exceeded. Please try again later."}',
        status_code=429,
        headers={
            "Content-Type": "application/json",
            "X-RateLimit-Limit": str(exc.detail.split()[0]) if exc.detail else "Unknown",
            "X-RateLimit-Reset": "60",
            "Retry-After": "60",
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    start = time.time()
    token = bind_correlation_id(request.headers.get("x-request-id"))
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id_ctx.get()
        duration_ms = int((time.time() - start) * 1000)
        route = request.scope.get("route")
        route_tmpl = getattr(route, "path", request.url.path)
        observe_request(route_tmpl, request.method, response.status_code, duration_ms / 1000.0)
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            dur_ms=duration_ms,
        )
        return response
    except Exception as e:
        duration_ms = int((time.time() - start) * 1000)
        log.error(
            "request failed",
            method=request.method,
            path=request.url.path,
            error=str(e),
            dur_ms=duration_ms,
        )
        raise
    finally:
        correlation_id_ctx.reset(token)


# Initialize metrics once on startup
init_metrics()


@app.on_event("startup")
async def startup_event():
    """Load SLO definitions and start the periodic evaluator."""
    engine = get_engine()
    log.info("SLO engine ready", services=engine.services())
    if settings.SCHEDULER_ENABLED:
        await get_scheduler(engine, settings.EVALUATION_INTERVAL_S).start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the periodic evaluator."""
    if settings.SCHEDULER_ENABLED:
        await get_scheduler(get_engine(), settings.EVALUATION_INTERVAL_S).stop()


@app.get("/metrics")
async def metrics():
    if not settings.METRICS_ENABLED:
        return Response(status_code=404)
    data, content_type = metrics_exposition()
    return Response(content=data, media_type=content_type)


# Health endpoints are public (no auth required)
app.include_router(health.router, tags=["health"])

# verify_token checks AUTH_ENABLED dynamically
app.include_router(slo.router, dependencies=[Depends(verify_token)])


@app.get("/")
async def root():
    """API information endpoint."""
    return {
        "name": "Error Budget Release Gate",
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
    }
