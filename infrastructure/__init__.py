# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Infrastructure - External API access
# PURPOSE: Cluster API client used by the cluster probes
# CREATED: 06 OCT 2026
# ============================================================================
"""
Infrastructure module for the health console.

Provides:
- ClusterClient: Async Kubernetes API client (httpx)
- ProvisioningAPI: Storage calls the provisioning probe depends on

Usage:
    from infrastructure import ClusterClient

    client = ClusterClient.in_cluster(timeout=10.0)
    version = await client.server_version()
"""

from infrastructure.cluster import (
    ClusterAPIError,
    ClusterClient,
    ClusterConfigError,
    ProvisioningAPI,
    ServiceAccountTokenAuth,
)

__all__ = [
    "ClusterAPIError",
    "ClusterClient",
    "ClusterConfigError",
    "ProvisioningAPI",
    "ServiceAccountTokenAuth",
]
