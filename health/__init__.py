# ============================================================================
# HEALTH MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Infrastructure - HTTP surface
# PURPOSE: Metrics exposition and Kubernetes probes
# CREATED: 06 OCT 2026
# ============================================================================
"""
Health Module

- /metrics: Prometheus exposition
- /livez:   Process alive (instant)
- /readyz:  Every started collector completed a cycle
- /health:  Per-collector status

Usage:
    from health import health_router, set_runtime

    set_runtime(sink, collectors)
    app.include_router(health_router)
"""

from health.router import (
    health_router,
    set_runtime,
    get_collectors,
    CollectorStatusResponse,
    HealthResponse,
)

__all__ = [
    "health_router",
    "set_runtime",
    "get_collectors",
    "CollectorStatusResponse",
    "HealthResponse",
]
