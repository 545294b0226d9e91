# ============================================================================
# CONFIGURATION TESTS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Tests - Environment-driven settings
# PURPOSE: Verify duration parsing, target scanning and defaults
# CREATED: 07 OCT 2026
# ============================================================================
"""
Configuration Tests

Covers:
1. parse_duration: units, combinations, bare seconds, errors, non-finite values
2. Malformed values fall back to defaults
3. DB_<N>_* / REGISTRY_<N>_* scanning stops at the first gap
4. Object store disabled when MINIO_ENDPOINT is empty
5. ServiceSettings.from_env defaults and overrides

Run with:
    pytest tests/test_config.py -v
"""

import pytest

from core.config import (
    DatabaseTarget,
    ObjectStoreTarget,
    ProbeTimeouts,
    ProvisioningDefaults,
    RegistryTarget,
    ServiceSettings,
    parse_duration,
)
from core.config.env import get_env_bool, get_env_duration, get_env_int


ALL_VARS = [
    "HOST", "METRICS_PORT", "COLLECT_INTERVAL", "SHUTDOWN_TIMEOUT", "IN_CLUSTER",
    "PROBE_NAMESPACE", "SERVICE_NAME", "MINIO_ENDPOINT", "MINIO_ACCESS_KEY",
    "MINIO_SECRET_KEY", "MINIO_USE_SSL", "DATABASE_PROBE_TIMEOUT", "PVC_BIND_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ALL_VARS:
        monkeypatch.delenv(name, raising=False)
    for index in range(1, 5):
        for suffix in ("NAME", "HOST", "PORT", "USER", "PASSWORD", "DATABASE", "SSLMODE"):
            monkeypatch.delenv(f"DB_{index}_{suffix}", raising=False)
        for suffix in ("NAME", "URL", "USER", "PASSWORD", "INSECURE"):
            monkeypatch.delenv(f"REGISTRY_{index}_{suffix}", raising=False)
    return monkeypatch


# ============================================================================
# DURATIONS
# ============================================================================

class TestParseDuration:

    @pytest.mark.parametrize("text,seconds", [
        ("500ms", 0.5),
        ("30s", 30.0),
        ("5m", 300.0),
        ("1h", 3600.0),
        ("1m30s", 90.0),
        ("30", 30.0),
        ("2.5", 2.5),
        (" 10s ", 10.0),
    ])
    def test_valid(self, text, seconds):
        assert parse_duration(text) == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "abc", "10x", "s10", "5m garbage", "nan", "inf", "-inf", "Infinity"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestEnvFallbacks:

    def test_duration_fallback(self, monkeypatch):
        monkeypatch.setenv("COLLECT_INTERVAL", "soon")
        assert get_env_duration("COLLECT_INTERVAL", 30.0) == 30.0

    def test_non_positive_duration_fallback(self, monkeypatch):
        monkeypatch.setenv("COLLECT_INTERVAL", "0s")
        assert get_env_duration("COLLECT_INTERVAL", 30.0) == 30.0

    def test_infinite_duration_fallback(self, monkeypatch):
        monkeypatch.setenv("COLLECT_INTERVAL", "inf")
        assert get_env_duration("COLLECT_INTERVAL", 30.0) == 30.0

    def test_int_fallback(self, monkeypatch):
        monkeypatch.setenv("METRICS_PORT", "ninety")
        assert get_env_int("METRICS_PORT", 9090) == 9090

    @pytest.mark.parametrize("value,expected", [("true", True), ("0", False), ("YES", True), ("off", False)])
    def test_bool(self, monkeypatch, value, expected):
        monkeypatch.setenv("IN_CLUSTER", value)
        assert get_env_bool("IN_CLUSTER", not expected) is expected

    def test_bool_fallback(self, monkeypatch):
        monkeypatch.setenv("IN_CLUSTER", "maybe")
        assert get_env_bool("IN_CLUSTER", True) is True


# ============================================================================
# TARGETS
# ============================================================================

class TestTargets:

    def test_database_defaults(self, clean_env):
        clean_env.setenv("DB_1_NAME", "orders")
        clean_env.setenv("DB_1_HOST", "orders.db")

        target = DatabaseTarget.from_env(1)

        assert target == DatabaseTarget(name="orders", host="orders.db")
        assert target.port == 5432
        assert target.user == "postgres"
        assert target.sslmode == "prefer"

    def test_database_requires_host(self, clean_env):
        clean_env.setenv("DB_1_NAME", "orders")
        assert DatabaseTarget.from_env(1) is None

    def test_scanning_stops_at_gap(self, clean_env):
        clean_env.setenv("DB_1_NAME", "one")
        clean_env.setenv("DB_1_HOST", "one.db")
        clean_env.setenv("DB_3_NAME", "three")
        clean_env.setenv("DB_3_HOST", "three.db")

        settings = ServiceSettings.from_env()

        assert [d.name for d in settings.databases] == ["one"]

    def test_registry(self, clean_env):
        clean_env.setenv("REGISTRY_1_NAME", "hub")
        clean_env.setenv("REGISTRY_1_URL", "registry.local:5000")
        clean_env.setenv("REGISTRY_1_INSECURE", "true")

        target = RegistryTarget.from_env(1)

        assert target.insecure
        assert target.username == ""

    def test_object_store_disabled(self, clean_env):
        assert ObjectStoreTarget.from_env() is None

    def test_object_store(self, clean_env):
        clean_env.setenv("MINIO_ENDPOINT", "minio:9000")
        clean_env.setenv("MINIO_SECRET_KEY", "hunter2")

        target = ObjectStoreTarget.from_env()

        assert target.endpoint == "minio:9000"
        assert not target.use_ssl
        assert "hunter2" not in repr(target)


# ============================================================================
# SERVICE SETTINGS
# ============================================================================

class TestServiceSettings:

    def test_defaults(self, clean_env):
        settings = ServiceSettings.from_env()

        assert settings.host == "0.0.0.0"
        assert settings.metrics_port == 9090
        assert settings.collect_interval == 30.0
        assert settings.shutdown_timeout == 10.0
        assert settings.in_cluster is True
        assert settings.probe_namespace == "default"
        assert settings.service_name == "health-console"
        assert settings.databases == []
        assert settings.object_store is None
        assert settings.timeouts == ProbeTimeouts()
        assert settings.provisioning == ProvisioningDefaults()

    def test_overrides(self, clean_env):
        clean_env.setenv("METRICS_PORT", "9100")
        clean_env.setenv("COLLECT_INTERVAL", "1m30s")
        clean_env.setenv("IN_CLUSTER", "false")
        clean_env.setenv("DATABASE_PROBE_TIMEOUT", "2s")
        clean_env.setenv("PVC_BIND_TIMEOUT", "1m")

        settings = ServiceSettings.from_env()

        assert settings.metrics_port == 9100
        assert settings.collect_interval == 90.0
        assert settings.in_cluster is False
        assert settings.timeouts.database == 2.0
        assert settings.provisioning.bind_timeout == 60.0

    def test_timeout_defaults(self):
        timeouts = ProbeTimeouts()
        assert (timeouts.database, timeouts.registry, timeouts.object_store) == (5.0, 10.0, 10.0)
        assert timeouts.provisioning == 45.0

        provisioning = ProvisioningDefaults()
        assert provisioning.bind_timeout == 30.0
        assert provisioning.poll_interval == 2.0
        assert provisioning.request_size == "1Mi"
