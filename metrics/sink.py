# ============================================================================
# METRIC SINK
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Metrics - Exposition backend
# PURPOSE: Gauge / counter / histogram writes behind a small interface
# CREATED: 06 OCT 2026
# ============================================================================
"""
Metric Sink

The collectors never touch prometheus_client directly. They write through
a MetricSink, which owns an explicit CollectorRegistry. Tests build a
fresh sink per case and read values back with `sample()`.

Metric families:
    database_up{instance,host,port,error_reason}
    kubernetes_apiserver_up{error_reason}
    coredns_up{error_reason}
    etcd_up{error_reason}
    cluster_storage_up{storage_class,error_reason}
    registry_up{instance,url,error_reason}
    object_store_up{endpoint,error_reason}
    health_check_errors_total{collector,error_type}
    health_check_duration_seconds{collector}
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.exposition import CONTENT_TYPE_LATEST, generate_latest

logger = logging.getLogger(__name__)


# ============================================================================
# METRIC NAMES
# ============================================================================

DATABASE_UP = "database_up"
APISERVER_UP = "kubernetes_apiserver_up"
COREDNS_UP = "coredns_up"
ETCD_UP = "etcd_up"
STORAGE_UP = "cluster_storage_up"
REGISTRY_UP = "registry_up"
OBJECT_STORE_UP = "object_store_up"
CHECK_ERRORS = "health_check_errors_total"
CHECK_DURATION = "health_check_duration_seconds"

ERROR_REASON = "error_reason"

# name -> (help, identifying labels)
GAUGE_FAMILIES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    DATABASE_UP: (
        "Database connectivity (1 = up, 0 = down)",
        ("instance", "host", "port"),
    ),
    APISERVER_UP: ("Kubernetes API server reachability", ()),
    COREDNS_UP: ("Cluster DNS health", ()),
    ETCD_UP: ("etcd health", ()),
    STORAGE_UP: (
        "Storage class provisioning health",
        ("storage_class",),
    ),
    REGISTRY_UP: (
        "Container registry v2 API reachability",
        ("instance", "url"),
    ),
    OBJECT_STORE_UP: ("Object store reachability", ("endpoint",)),
}

DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


# ============================================================================
# INTERFACE
# ============================================================================

class MetricSink(ABC):
    """Write side of the exported metrics."""

    @abstractmethod
    def set_gauge(self, metric: str, labels: Mapping[str, str], value: float) -> None:
        """Set (creating if needed) one gauge series."""
        pass

    @abstractmethod
    def remove_series(self, metric: str, labels: Mapping[str, str]) -> None:
        """Delete one gauge series. Missing series are ignored."""
        pass

    @abstractmethod
    def increment_counter(self, metric: str, labels: Mapping[str, str], amount: float = 1.0) -> None:
        pass

    @abstractmethod
    def observe_histogram(self, metric: str, labels: Mapping[str, str], value: float) -> None:
        pass


# ============================================================================
# PROMETHEUS IMPLEMENTATION
# ============================================================================

class PrometheusMetricSink(MetricSink):
    """
    MetricSink backed by prometheus_client.

    Every instance owns its registry; nothing is registered in the
    process-global default registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._labelnames: Dict[str, Tuple[str, ...]] = {}
        self._gauges: Dict[str, Gauge] = {}

        for name, (documentation, labels) in GAUGE_FAMILIES.items():
            labelnames = labels + (ERROR_REASON,)
            self._gauges[name] = Gauge(
                name, documentation, labelnames, registry=self.registry
            )
            self._labelnames[name] = labelnames

        self._errors = Counter(
            CHECK_ERRORS,
            "Probe failures by collector and error type",
            ("collector", "error_type"),
            registry=self.registry,
        )
        self._labelnames[CHECK_ERRORS] = ("collector", "error_type")

        self._duration = Histogram(
            CHECK_DURATION,
            "Probe duration in seconds",
            ("collector",),
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
        self._labelnames[CHECK_DURATION] = ("collector",)

    def _values(self, metric: str, labels: Mapping[str, str]) -> Tuple[str, ...]:
        """Label values in declaration order."""
        try:
            names = self._labelnames[metric]
        except KeyError:
            raise ValueError(f"Unknown metric: {metric}")
        return tuple(str(labels[name]) for name in names)

    def set_gauge(self, metric: str, labels: Mapping[str, str], value: float) -> None:
        gauge = self._gauges.get(metric)
        if gauge is None:
            raise ValueError(f"Unknown gauge: {metric}")
        gauge.labels(*self._values(metric, labels)).set(value)

    def remove_series(self, metric: str, labels: Mapping[str, str]) -> None:
        gauge = self._gauges.get(metric)
        if gauge is None:
            raise ValueError(f"Unknown gauge: {metric}")
        try:
            gauge.remove(*self._values(metric, labels))
        except KeyError:
            logger.debug(f"Series already absent: {metric}{dict(labels)}")

    def increment_counter(self, metric: str, labels: Mapping[str, str], amount: float = 1.0) -> None:
        if metric != CHECK_ERRORS:
            raise ValueError(f"Unknown counter: {metric}")
        self._errors.labels(*self._values(metric, labels)).inc(amount)

    def observe_histogram(self, metric: str, labels: Mapping[str, str], value: float) -> None:
        if metric != CHECK_DURATION:
            raise ValueError(f"Unknown histogram: {metric}")
        self._duration.labels(*self._values(metric, labels)).observe(value)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def render(self) -> bytes:
        """Exposition text for /metrics."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def sample(self, name: str, labels: Optional[Mapping[str, str]] = None) -> Optional[float]:
        """Current value of one sample, None when absent."""
        return self.registry.get_sample_value(name, dict(labels or {}))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DATABASE_UP",
    "APISERVER_UP",
    "COREDNS_UP",
    "ETCD_UP",
    "STORAGE_UP",
    "REGISTRY_UP",
    "OBJECT_STORE_UP",
    "CHECK_ERRORS",
    "CHECK_DURATION",
    "ERROR_REASON",
    "GAUGE_FAMILIES",
    "MetricSink",
    "PrometheusMetricSink",
]
