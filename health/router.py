# ============================================================================
# HEALTH CONSOLE ROUTER
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Infrastructure - FastAPI endpoints
# PURPOSE: Prometheus exposition, Kubernetes probes and collector status
# CREATED: 06 OCT 2026
# ============================================================================
"""
Health Console Router

Endpoints:
    GET /metrics - Prometheus exposition of every probe family
    GET /livez   - Liveness probe (is the process alive?)
                   Instant, no external dependencies.
    GET /readyz  - Readiness probe
                   200 once every started collector completed a cycle,
                   503 until then.
    GET /health  - Per-collector status (cycles, timings, entity states)

The router reads the sink and collectors registered by the application
lifespan through set_runtime().
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from collectors.base import Collector
from metrics.sink import PrometheusMetricSink
from __version__ import __version__, BUILD_DATE

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])

# Runtime state (set by main.lifespan)
_sink: Optional[PrometheusMetricSink] = None
_collectors: List[Collector] = []


def set_runtime(sink: Optional[PrometheusMetricSink], collectors: Sequence[Collector]) -> None:
    """Register the metric sink and the started collectors."""
    global _sink, _collectors
    _sink = sink
    _collectors = list(collectors)


def get_collectors() -> List[Collector]:
    return list(_collectors)


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class CollectorStatusResponse(BaseModel):
    """Status of one collector."""
    name: str
    running: bool
    ready: bool
    interval_seconds: float
    cycles: int = 0
    last_cycle_at: Optional[datetime] = None
    last_cycle_duration_seconds: Optional[float] = None
    unhealthy: int = 0
    entities: Dict[str, Dict[str, str]] = Field(
        default_factory=dict,
        description="metric -> entity -> last reported category",
    )


class HealthResponse(BaseModel):
    """Full status of every collector."""
    status: str
    version: str
    build_date: str
    collectors: List[CollectorStatusResponse] = []


# ============================================================================
# METRICS
# ============================================================================

@health_router.get("/metrics")
async def metrics():
    """Prometheus text exposition."""
    if _sink is None:
        return Response(status_code=503, content="metrics sink not initialized\n", media_type="text/plain")
    return Response(content=_sink.render(), media_type=_sink.content_type)


# ============================================================================
# LIVENESS PROBE
# ============================================================================

@health_router.get("/livez")
async def liveness_probe():
    """
    Kubernetes liveness probe.

    Returns 200 if the process is alive. No external checks.
    """
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


# ============================================================================
# READINESS PROBE
# ============================================================================

@health_router.get("/readyz")
async def readiness_probe():
    """
    Kubernetes readiness probe.

    Ready once every started collector has completed at least one cycle,
    so the first scrape never sees an empty exposition.
    """
    pending = [c.name for c in _collectors if not c.ready]

    if pending:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "pending": pending},
        )

    return {"status": "ready", "collectors": len(_collectors)}


# ============================================================================
# FULL STATUS
# ============================================================================

@health_router.get("/health", response_model=HealthResponse)
async def full_health_status():
    """
    Per-collector status.

    Reports the state of the last cycles; it never runs probes itself.
    status is "healthy" when the last cycle of every collector had no
    unhealthy entity, "degraded" otherwise.
    """
    statuses = [CollectorStatusResponse(**c.status()) for c in _collectors]
    degraded = any(s.unhealthy for s in statuses) or any(not s.ready for s in statuses)

    return HealthResponse(
        status="degraded" if degraded else "healthy",
        version=__version__,
        build_date=BUILD_DATE,
        collectors=statuses,
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "health_router",
    "set_runtime",
    "get_collectors",
    "CollectorStatusResponse",
    "HealthResponse",
]
