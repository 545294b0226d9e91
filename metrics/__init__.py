# ============================================================================
# METRICS MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Metrics - Sink and label lifecycle
# PURPOSE: Export metric sink and label registry
# CREATED: 06 OCT 2026
# ============================================================================

from metrics.label_registry import MetricLabelRegistry
from metrics.sink import (
    APISERVER_UP,
    CHECK_DURATION,
    CHECK_ERRORS,
    COREDNS_UP,
    DATABASE_UP,
    ETCD_UP,
    OBJECT_STORE_UP,
    REGISTRY_UP,
    STORAGE_UP,
    MetricSink,
    PrometheusMetricSink,
)

__all__ = [
    "MetricLabelRegistry",
    "MetricSink",
    "PrometheusMetricSink",
    "DATABASE_UP",
    "APISERVER_UP",
    "COREDNS_UP",
    "ETCD_UP",
    "STORAGE_UP",
    "REGISTRY_UP",
    "OBJECT_STORE_UP",
    "CHECK_ERRORS",
    "CHECK_DURATION",
]
