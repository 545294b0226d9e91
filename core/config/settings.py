# ============================================================================
# SERVICE SETTINGS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Core - Target and service configuration
# PURPOSE: Load monitored targets and service knobs from environment
# CREATED: 06 OCT 2026
# ============================================================================
"""
Service Settings

Loaded from environment variables at startup.

Service:
    METRICS_PORT: HTTP port for /metrics and health routes (default 9090)
    HOST: Bind address (default 0.0.0.0)
    COLLECT_INTERVAL: Cycle interval, e.g. "30s", "1m30s" (default 30s)
    IN_CLUSTER: Build the cluster collector (default true)
    PROBE_NAMESPACE: Namespace for storage test claims (default "default")
    SERVICE_NAME: Used in claim labels (default "health-console")
    SHUTDOWN_TIMEOUT: Grace period for in-flight cycles (default 10s)

Databases (N = 1, 2, ...; scanning stops at the first missing index):
    DB_<N>_NAME, DB_<N>_HOST (required)
    DB_<N>_PORT, DB_<N>_USER, DB_<N>_PASSWORD, DB_<N>_DATABASE, DB_<N>_SSLMODE

Registries (N = 1, 2, ...):
    REGISTRY_<N>_NAME, REGISTRY_<N>_URL (required)
    REGISTRY_<N>_USER, REGISTRY_<N>_PASSWORD, REGISTRY_<N>_INSECURE

Object store:
    MINIO_ENDPOINT (empty disables), MINIO_ACCESS_KEY, MINIO_SECRET_KEY,
    MINIO_USE_SSL
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.config.defaults import ProbeTimeouts, ProvisioningDefaults
from core.config.env import get_env, get_env_bool, get_env_duration, get_env_int

logger = logging.getLogger(__name__)


# ============================================================================
# TARGETS
# ============================================================================

@dataclass(frozen=True)
class DatabaseTarget:
    """One PostgreSQL instance to probe."""
    name: str
    host: str
    port: int = 5432
    user: str = "postgres"
    password: str = field(default="", repr=False)
    database: str = "postgres"
    sslmode: str = "prefer"

    @classmethod
    def from_env(cls, index: int) -> Optional["DatabaseTarget"]:
        """Load DB_<index>_*; returns None when NAME or HOST is missing."""
        prefix = f"DB_{index}_"
        name = get_env(prefix + "NAME")
        host = get_env(prefix + "HOST")
        if not name or not host:
            return None
        return cls(
            name=name,
            host=host,
            port=get_env_int(prefix + "PORT", 5432),
            user=get_env(prefix + "USER", "postgres"),
            password=get_env(prefix + "PASSWORD"),
            database=get_env(prefix + "DATABASE", "postgres"),
            sslmode=get_env(prefix + "SSLMODE", "prefer"),
        )


@dataclass(frozen=True)
class RegistryTarget:
    """One container registry exposing the v2 API."""
    name: str
    url: str
    username: str = ""
    password: str = field(default="", repr=False)
    insecure: bool = False

    @classmethod
    def from_env(cls, index: int) -> Optional["RegistryTarget"]:
        prefix = f"REGISTRY_{index}_"
        name = get_env(prefix + "NAME")
        url = get_env(prefix + "URL")
        if not name or not url:
            return None
        return cls(
            name=name,
            url=url,
            username=get_env(prefix + "USER"),
            password=get_env(prefix + "PASSWORD"),
            insecure=get_env_bool(prefix + "INSECURE", False),
        )


@dataclass(frozen=True)
class ObjectStoreTarget:
    """S3-compatible endpoint (host:port, no scheme)."""
    endpoint: str
    access_key: str = ""
    secret_key: str = field(default="", repr=False)
    use_ssl: bool = False

    @classmethod
    def from_env(cls) -> Optional["ObjectStoreTarget"]:
        endpoint = get_env("MINIO_ENDPOINT")
        if not endpoint:
            return None
        return cls(
            endpoint=endpoint,
            access_key=get_env("MINIO_ACCESS_KEY"),
            secret_key=get_env("MINIO_SECRET_KEY"),
            use_ssl=get_env_bool("MINIO_USE_SSL", False),
        )


def _load_indexed(loader) -> list:
    """Call loader(1), loader(2), ... until it returns None."""
    targets = []
    index = 1
    while True:
        target = loader(index)
        if target is None:
            break
        targets.append(target)
        index += 1
    return targets


# ============================================================================
# SERVICE SETTINGS
# ============================================================================

@dataclass(frozen=True)
class ServiceSettings:
    """Everything the runtime needs to build collectors and serve HTTP."""

    # HTTP
    host: str = "0.0.0.0"
    metrics_port: int = 9090

    # Scheduling
    collect_interval: float = 30.0
    shutdown_timeout: float = 10.0

    # Cluster
    in_cluster: bool = True
    probe_namespace: str = "default"
    service_name: str = "health-console"

    # Targets
    databases: List[DatabaseTarget] = field(default_factory=list)
    registries: List[RegistryTarget] = field(default_factory=list)
    object_store: Optional[ObjectStoreTarget] = None

    # Timings
    timeouts: ProbeTimeouts = field(default_factory=ProbeTimeouts)
    provisioning: ProvisioningDefaults = field(default_factory=ProvisioningDefaults)

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        """Create settings from environment variables."""
        settings = cls(
            host=get_env("HOST", "0.0.0.0"),
            metrics_port=get_env_int("METRICS_PORT", 9090),
            collect_interval=get_env_duration("COLLECT_INTERVAL", 30.0),
            shutdown_timeout=get_env_duration("SHUTDOWN_TIMEOUT", 10.0),
            in_cluster=get_env_bool("IN_CLUSTER", True),
            probe_namespace=get_env("PROBE_NAMESPACE", "default"),
            service_name=get_env("SERVICE_NAME", "health-console"),
            databases=_load_indexed(DatabaseTarget.from_env),
            registries=_load_indexed(RegistryTarget.from_env),
            object_store=ObjectStoreTarget.from_env(),
            timeouts=ProbeTimeouts.from_env(),
            provisioning=ProvisioningDefaults.from_env(),
        )
        logger.info(
            f"Settings loaded: {len(settings.databases)} database(s), "
            f"{len(settings.registries)} registry(ies), "
            f"object_store={'yes' if settings.object_store else 'no'}, "
            f"in_cluster={settings.in_cluster}, interval={settings.collect_interval}s"
        )
        return settings


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DatabaseTarget",
    "RegistryTarget",
    "ObjectStoreTarget",
    "ServiceSettings",
]
