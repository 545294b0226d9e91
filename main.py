# ============================================================================
# HEALTH CONSOLE - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Core - FastAPI application entry point
# PURPOSE: Metrics endpoint with background collectors
# CREATED: 06 OCT 2026
# ============================================================================
"""
Health Console Main Application

FastAPI application that:
1. Runs one collector per configured backend family in the background
2. Exposes the resulting gauges on /metrics
3. Serves Kubernetes liveness/readiness probes

Usage:
    uvicorn main:app --host 0.0.0.0 --port 9090
"""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import List

import uvicorn
from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, CODENAME, EPOCH
from collectors import build_collectors
from collectors.base import Collector
from core.config import ServiceSettings
from core.logging import configure_logging, get_logger
from health import health_router, set_runtime, get_collectors
from metrics.sink import PrometheusMetricSink

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)


async def _stop_all(collectors: List[Collector]) -> None:
    """Stop collectors together; one failing stop does not block the rest."""
    outcomes = await asyncio.gather(
        *(collector.stop() for collector in collectors), return_exceptions=True
    )
    for collector, outcome in zip(collectors, outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"Collector {collector.name} did not stop cleanly: {outcome}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire settings, sink and collectors; tear them down in reverse."""
    logger.info(f"{CODENAME} v{__version__} starting (epoch {EPOCH}, built {BUILD_DATE})")

    settings = ServiceSettings.from_env()
    sink = PrometheusMetricSink()
    collectors = build_collectors(settings, sink)
    app.state.settings = settings
    app.state.sink = sink
    set_runtime(sink, collectors)

    for collector in collectors:
        await collector.start()
    logger.info(
        f"Collecting every {settings.collect_interval:g}s with "
        f"{', '.join(c.name for c in collectors) or 'no collectors'}"
    )

    try:
        yield
    finally:
        logger.info(f"Stopping {len(collectors)} collector(s)")
        await _stop_all(collectors)
        set_runtime(None, [])
        logger.info(f"{CODENAME} stopped")


app = FastAPI(
    title=CODENAME,
    description="Probes cluster dependencies and exports their health as Prometheus gauges",
    version=__version__,
    lifespan=lifespan,
)

# /metrics, /livez, /readyz and /health sit at the root
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "service": CODENAME,
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "collectors": [c.name for c in get_collectors()],
        "metrics": "/metrics",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    settings = ServiceSettings.from_env()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.metrics_port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
