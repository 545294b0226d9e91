# ============================================================================
# CLUSTER PROBES
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - API server, CoreDNS, etcd, storage class discovery
# PURPOSE: Control plane liveness checks through the cluster API
# CREATED: 06 OCT 2026
# ============================================================================
"""
Cluster Probes

All probes share one ClusterClient owned by the cluster collector.

    APIServerProbe          GET /version
    CoreDNSProbe            kube-dns pods Ready, then resolve the API service name
    EtcdProbe               etcd pods Running, else GET /livez
    StorageClassListProbe   list storage classes (discovery for provisioning)
"""

import asyncio
import logging
import socket
from typing import Any, Awaitable, Callable, List, Optional

from core.contracts import Category, EntityKey, ProbeOutcome
from infrastructure.cluster import ClusterClient, object_name, pod_is_ready, pod_phase
from metrics.sink import APISERVER_UP, COREDNS_UP, ETCD_UP, STORAGE_UP
from probes.classifier import DNS_CLASSIFIER, PLATFORM_API_CLASSIFIER
from probes.core import CONTROL_FLOW, Probe, ProbeContext

logger = logging.getLogger(__name__)

SYSTEM_NAMESPACE = "kube-system"
DNS_SELECTOR = "k8s-app=kube-dns"
ETCD_SELECTOR = "component=etcd"
DNS_TEST_NAME = "kubernetes.default.svc.cluster.local"

# Placeholder entity used until discovery has produced real class names
DEFAULT_STORAGE_ENTITY = EntityKey.of(STORAGE_UP, storage_class="default")

Resolver = Callable[[str], Awaitable[Any]]


async def resolve_host(name: str) -> List[str]:
    """Resolve with the event loop's resolver; returns the addresses."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(name, None, type=socket.SOCK_STREAM)
    return sorted({info[4][0] for info in infos})


class ClusterProbe(Probe):
    """Base for probes that talk to the cluster API."""

    classifier = PLATFORM_API_CLASSIFIER

    def __init__(
        self,
        client: ClusterClient,
        entity: EntityKey,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(entity, timeout_seconds)
        self.client = client


class APIServerProbe(ClusterProbe):
    name = "kubernetes_apiserver"
    metric = APISERVER_UP

    def __init__(self, client: ClusterClient, timeout_seconds: Optional[float] = None):
        super().__init__(client, EntityKey.of(APISERVER_UP), timeout_seconds)

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        try:
            version = await ctx.call(self.client.server_version())
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "unreachable", "GET /version")

        git_version = version.get("gitVersion", "unknown")
        logger.info(f"Kubernetes API server is healthy ({git_version})")
        return ProbeOutcome.ok("API server reachable", version=git_version)


class CoreDNSProbe(ClusterProbe):
    name = "coredns"
    metric = COREDNS_UP

    def __init__(
        self,
        client: ClusterClient,
        timeout_seconds: Optional[float] = None,
        resolver: Optional[Resolver] = None,
        lookup_name: str = DNS_TEST_NAME,
    ):
        super().__init__(client, EntityKey.of(COREDNS_UP), timeout_seconds)
        self.resolver = resolver or resolve_host
        self.lookup_name = lookup_name

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        try:
            pods = await ctx.call(self.client.list_pods(SYSTEM_NAMESPACE, DNS_SELECTOR))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "list_failed", "list CoreDNS pods")

        if not pods:
            logger.warning(f"No CoreDNS pods found [reason: {Category.NO_PODS_FOUND.value}]")
            return ProbeOutcome.failed(Category.NO_PODS_FOUND, "no_pods", "no CoreDNS pods")

        ready = [object_name(pod) for pod in pods if pod_is_ready(pod)]
        if not ready:
            logger.warning(f"No ready CoreDNS pods [reason: {Category.NO_READY_PODS.value}]")
            return ProbeOutcome.failed(
                Category.NO_READY_PODS,
                "no_ready_pods",
                f"{len(pods)} CoreDNS pod(s), none ready",
            )

        try:
            addresses = await ctx.call(self.resolver(self.lookup_name))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(
                e, "resolution_failed", f"resolve {self.lookup_name}", classifier=DNS_CLASSIFIER
            )

        logger.info(f"CoreDNS is healthy ({len(ready)} ready pod(s))")
        return ProbeOutcome.ok(
            "DNS resolution working",
            ready_pods=len(ready),
            addresses=list(addresses or []),
        )


class EtcdProbe(ClusterProbe):
    """
    etcd often runs as static pods labelled component=etcd. Managed
    control planes hide it entirely; then the API server's /livez (which
    includes the etcd check) is the best available signal.
    """

    name = "etcd"
    metric = ETCD_UP

    def __init__(self, client: ClusterClient, timeout_seconds: Optional[float] = None):
        super().__init__(client, EntityKey.of(ETCD_UP), timeout_seconds)

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        try:
            pods = await ctx.call(self.client.list_pods(SYSTEM_NAMESPACE, ETCD_SELECTOR))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "list_failed", "list etcd pods")

        if not pods:
            try:
                await ctx.call(self.client.livez())
            except CONTROL_FLOW:
                raise
            except Exception as e:
                return self.failure(e, "health_check_failed", "GET /livez")
            logger.info("etcd is healthy (verified via API server /livez)")
            return ProbeOutcome.ok("verified via /livez", source="livez")

        running = [pod for pod in pods if pod_phase(pod) == "Running"]
        if not running:
            logger.warning(f"No running etcd pods [reason: {Category.NO_RUNNING_PODS.value}]")
            return ProbeOutcome.failed(
                Category.NO_RUNNING_PODS,
                "no_running_pods",
                f"{len(pods)} etcd pod(s), none running",
            )

        logger.info(f"etcd is healthy ({len(running)} running pod(s))")
        return ProbeOutcome.ok("etcd pods running", source="pods", running_pods=len(running))


class StorageClassListProbe(ClusterProbe):
    """
    Discovery step for provisioning. Reports under the "default"
    placeholder entity; on success `details["storage_classes"]` holds the
    class names for the per-class provisioning probes.
    """

    name = "storage_class"
    metric = STORAGE_UP

    def __init__(self, client: ClusterClient, timeout_seconds: Optional[float] = None):
        super().__init__(client, DEFAULT_STORAGE_ENTITY, timeout_seconds)

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        try:
            classes = await ctx.call(self.client.list_storage_classes())
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "list_failed", "list storage classes")

        names = sorted(name for name in (object_name(sc) for sc in classes) if name)
        if not names:
            logger.warning(f"No storage classes found [reason: {Category.NO_STORAGE_CLASSES.value}]")
            return ProbeOutcome.failed(
                Category.NO_STORAGE_CLASSES, "no_storage_classes", "no storage classes"
            )

        logger.debug(f"Discovered storage classes: {names}")
        return ProbeOutcome.ok(f"{len(names)} storage class(es)", storage_classes=names)


__all__ = [
    "DEFAULT_STORAGE_ENTITY",
    "resolve_host",
    "ClusterProbe",
    "APIServerProbe",
    "CoreDNSProbe",
    "EtcdProbe",
    "StorageClassListProbe",
]
