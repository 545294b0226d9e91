# ============================================================================
# COLLECTORS MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Collectors - Factories and wiring
# PURPOSE: Build the configured collectors from ServiceSettings
# CREATED: 06 OCT 2026
# ============================================================================
"""
Collectors

Factories build one collector per backend family. build_collectors()
skips families with nothing configured, logs a setup failure once and
carries on with the remaining families.

Usage:
    sink = PrometheusMetricSink()
    collectors = build_collectors(ServiceSettings.from_env(), sink)
    for collector in collectors:
        await collector.start()
"""

import logging
from typing import List, Optional

from collectors.base import Collector, CollectorSetupError
from collectors.cluster import ClusterCollector
from collectors.database import DatabaseCollector
from collectors.object_store import ObjectStoreCollector
from collectors.registry import RegistryCollector
from core.config.settings import ServiceSettings
from infrastructure.cluster import ClusterClient, ClusterConfigError
from metrics.sink import MetricSink

logger = logging.getLogger(__name__)


def new_database_collector(settings: ServiceSettings, sink: MetricSink, connect=None) -> DatabaseCollector:
    return DatabaseCollector(
        settings.databases,
        sink,
        interval=settings.collect_interval,
        timeout_seconds=settings.timeouts.database,
        shutdown_timeout=settings.shutdown_timeout,
        connect=connect,
    )


def new_cluster_collector(
    settings: ServiceSettings,
    sink: MetricSink,
    client: Optional[ClusterClient] = None,
) -> ClusterCollector:
    """
    Raises:
        CollectorSetupError: No in-cluster configuration available
    """
    if client is None:
        try:
            client = ClusterClient.in_cluster(timeout=settings.timeouts.cluster)
        except ClusterConfigError as e:
            raise CollectorSetupError(f"cluster collector unavailable: {e}") from e

    return ClusterCollector(
        client,
        sink,
        interval=settings.collect_interval,
        timeouts=settings.timeouts,
        provisioning=settings.provisioning,
        namespace=settings.probe_namespace,
        service_name=settings.service_name,
        shutdown_timeout=settings.shutdown_timeout,
    )


def new_registry_collector(settings: ServiceSettings, sink: MetricSink) -> RegistryCollector:
    return RegistryCollector(
        settings.registries,
        sink,
        interval=settings.collect_interval,
        timeout_seconds=settings.timeouts.registry,
        shutdown_timeout=settings.shutdown_timeout,
    )


def new_object_store_collector(settings: ServiceSettings, sink: MetricSink) -> ObjectStoreCollector:
    if settings.object_store is None:
        raise CollectorSetupError("MINIO_ENDPOINT not set")
    return ObjectStoreCollector(
        settings.object_store,
        sink,
        interval=settings.collect_interval,
        timeout_seconds=settings.timeouts.object_store,
        shutdown_timeout=settings.shutdown_timeout,
    )


def build_collectors(settings: ServiceSettings, sink: MetricSink) -> List[Collector]:
    """Build every configured collector; failures are logged and skipped."""
    factories = []
    if settings.databases:
        factories.append(("database", new_database_collector))
    else:
        logger.info("No databases configured, database collector disabled")

    if settings.in_cluster:
        factories.append(("cluster", new_cluster_collector))
    else:
        logger.info("IN_CLUSTER=false, cluster collector disabled")

    if settings.registries:
        factories.append(("registry", new_registry_collector))
    else:
        logger.info("No registries configured, registry collector disabled")

    if settings.object_store is not None:
        factories.append(("object_store", new_object_store_collector))
    else:
        logger.info("MINIO_ENDPOINT not set, object store collector disabled")

    collectors: List[Collector] = []
    for name, factory in factories:
        try:
            collectors.append(factory(settings, sink))
        except CollectorSetupError as e:
            logger.warning(f"Skipping {name} collector: {e}")
        except Exception as e:
            logger.exception(f"Failed to build {name} collector: {e}")

    logger.info(f"Built {len(collectors)} collector(s): {[c.name for c in collectors]}")
    return collectors


__all__ = [
    "Collector",
    "CollectorSetupError",
    "ClusterCollector",
    "DatabaseCollector",
    "ObjectStoreCollector",
    "RegistryCollector",
    "new_database_collector",
    "new_cluster_collector",
    "new_registry_collector",
    "new_object_store_collector",
    "build_collectors",
]
