# ============================================================================
# CLUSTER COLLECTOR
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Collectors - Control plane and storage
# PURPOSE: API server, CoreDNS, etcd and per-storage-class provisioning
# CREATED: 06 OCT 2026
# ============================================================================
"""
Cluster Collector

Each cycle runs two branches concurrently:

    control plane   APIServerProbe, CoreDNSProbe, EtcdProbe
    storage         StorageClassListProbe, then one StorageClassProbe
                    per discovered class

The storage label space follows discovery. While listing fails (or
returns nothing) the outcome is reported under storage_class="default".
Once real classes are known, every tracked class that is not in the
latest listing is pruned. That removes the placeholder, except on
clusters where a real class is itself named "default", whose series
is then left to its own provisioning result.

The collector owns the ClusterClient and closes it on stop, after any
shielded claim cleanups have had their chance to finish.
"""

import asyncio
import logging
from typing import List, Optional

from collectors.base import Collector
from core.config.defaults import ProbeTimeouts, ProvisioningDefaults
from core.contracts import EntityKey, ProbeResult
from core.logging import log_context
from infrastructure.cluster import ClusterClient
from metrics.sink import STORAGE_UP, MetricSink
from probes.cluster import (
    APIServerProbe,
    CoreDNSProbe,
    EtcdProbe,
    Resolver,
    StorageClassListProbe,
)
from probes.core import Probe
from probes.provisioning import CleanupTracker, StorageClassProbe

logger = logging.getLogger(__name__)


class ClusterCollector(Collector):

    def __init__(
        self,
        client: ClusterClient,
        sink: MetricSink,
        interval: float = 30.0,
        timeouts: Optional[ProbeTimeouts] = None,
        provisioning: Optional[ProvisioningDefaults] = None,
        namespace: str = "default",
        service_name: str = "health-console",
        shutdown_timeout: float = 10.0,
        resolver: Optional[Resolver] = None,
    ):
        super().__init__("cluster", interval, sink, shutdown_timeout)
        self.client = client
        self.timeouts = timeouts or ProbeTimeouts()
        self.provisioning = provisioning or ProvisioningDefaults()
        self.namespace = namespace
        self.service_name = service_name

        cluster_timeout = self.timeouts.cluster
        self._control_plane = [
            APIServerProbe(client, cluster_timeout),
            CoreDNSProbe(client, cluster_timeout, resolver=resolver),
            EtcdProbe(client, cluster_timeout),
        ]
        self._storage_list = StorageClassListProbe(client, cluster_timeout)
        self.cleanups = CleanupTracker()

    def probes(self) -> List[Probe]:
        return list(self._control_plane)

    def storage_probe(self, storage_class: str) -> StorageClassProbe:
        return StorageClassProbe(
            self.client,
            storage_class,
            namespace=self.namespace,
            service_name=self.service_name,
            timeout_seconds=self.timeouts.provisioning,
            timings=self.provisioning,
            cleanups=self.cleanups,
        )

    async def collect(self) -> List[ProbeResult]:
        control_plane, storage = await asyncio.gather(
            self.run_probes(self.probes()),
            self.collect_storage(),
        )
        return control_plane + storage

    async def collect_storage(self) -> List[ProbeResult]:
        """Discovery, label space maintenance, then per-class provisioning."""
        probe = self._storage_list
        with log_context(collector=self.name, probe=probe.name, entity=probe.entity.name):
            listing = await probe.run(probe.new_context(self._stop_event))

        if not listing.healthy:
            self.report(listing)
            return [listing]

        self.record(listing)
        names = listing.details.get("storage_classes") or []

        if not self._stopping:
            # drops the placeholder too, unless a real class is named "default"
            self.registry_for(STORAGE_UP).prune(
                EntityKey.of(STORAGE_UP, storage_class=name) for name in names
            )

        results = await self.run_probes([self.storage_probe(name) for name in names])
        return [listing] + results

    async def close(self) -> None:
        await self.cleanups.drain(self.provisioning.cleanup_timeout)
        await self.client.aclose()


__all__ = ["ClusterCollector"]
