# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Core - Default probe timings
# PURPOSE: Centralized per-probe deadlines and provisioning timings
# CREATED: 06 OCT 2026
# ============================================================================
"""
Configuration Defaults

Per-probe deadlines and the provisioning probe's polling schedule.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

from dataclasses import dataclass

from core.config.env import get_env_duration


@dataclass(frozen=True)
class ProbeTimeouts:
    """
    Per-invocation deadlines (seconds).

    Each probe call is bounded by its own deadline; nothing relies on
    an outer process-level timeout.
    """
    database: float = 5.0
    registry: float = 10.0
    object_store: float = 10.0
    cluster: float = 10.0  # API server, CoreDNS, etcd, storage class listing
    provisioning: float = 45.0

    @classmethod
    def from_env(cls) -> "ProbeTimeouts":
        """Create from environment variables."""
        return cls(
            database=get_env_duration("DATABASE_PROBE_TIMEOUT", 5.0),
            registry=get_env_duration("REGISTRY_PROBE_TIMEOUT", 10.0),
            object_store=get_env_duration("OBJECT_STORE_PROBE_TIMEOUT", 10.0),
            cluster=get_env_duration("CLUSTER_PROBE_TIMEOUT", 10.0),
            provisioning=get_env_duration("PROVISIONING_PROBE_TIMEOUT", 45.0),
        )


@dataclass(frozen=True)
class ProvisioningDefaults:
    """
    Timings for the storage class provisioning probe.

    Immediate binding polls every `poll_interval` until `bind_timeout`.
    Deferred binding waits `settle_delay` once and reads the claim.
    Cleanup gets its own deadline, independent of shutdown.
    """
    bind_timeout: float = 30.0
    poll_interval: float = 2.0
    settle_delay: float = 2.0
    cleanup_timeout: float = 10.0

    # Test claim shape
    request_size: str = "1Mi"
    access_mode: str = "ReadWriteOnce"
    name_prefix: str = "health-check-test"

    @classmethod
    def from_env(cls) -> "ProvisioningDefaults":
        """Create from environment variables."""
        return cls(
            bind_timeout=get_env_duration("PVC_BIND_TIMEOUT", 30.0),
            poll_interval=get_env_duration("PVC_POLL_INTERVAL", 2.0),
            settle_delay=get_env_duration("PVC_SETTLE_DELAY", 2.0),
            cleanup_timeout=get_env_duration("PVC_CLEANUP_TIMEOUT", 10.0),
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ProbeTimeouts",
    "ProvisioningDefaults",
]
