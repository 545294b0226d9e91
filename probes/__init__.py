# ============================================================================
# PROBES MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - One minimal real operation per entity
# PURPOSE: Export probe base types and concrete probes
# CREATED: 06 OCT 2026
# ============================================================================
"""
Probes

Each probe exercises one monitored entity and returns a ProbeResult:

    DatabaseProbe           SELECT 1 over psycopg
    APIServerProbe          GET /version
    CoreDNSProbe            kube-dns pods + name resolution
    EtcdProbe               etcd pods or /livez
    StorageClassListProbe   storage class discovery
    StorageClassProbe       claim provisioning test
    RegistryProbe           GET /v2/
    ObjectStoreProbe        ListBuckets
"""

from probes.core import (
    CONTROL_FLOW,
    Probe,
    ProbeCancelled,
    ProbeContext,
    ProbeTimeout,
)
from probes.cluster import (
    APIServerProbe,
    CoreDNSProbe,
    EtcdProbe,
    StorageClassListProbe,
)
from probes.database import DatabaseProbe
from probes.object_store import ObjectStoreProbe
from probes.provisioning import (
    BindingMode,
    CleanupTracker,
    ProvisioningPhase,
    ProvisioningSession,
    StorageClassProbe,
)
from probes.registry import RegistryProbe

__all__ = [
    "CONTROL_FLOW",
    "Probe",
    "ProbeCancelled",
    "ProbeContext",
    "ProbeTimeout",
    "APIServerProbe",
    "CoreDNSProbe",
    "EtcdProbe",
    "StorageClassListProbe",
    "DatabaseProbe",
    "ObjectStoreProbe",
    "BindingMode",
    "ProvisioningPhase",
    "ProvisioningSession",
    "CleanupTracker",
    "StorageClassProbe",
    "RegistryProbe",
]
