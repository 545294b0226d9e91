# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 06 OCT 2026
# ============================================================================
"""
Configuration Module

Provides targets, service settings and probe timings for the health console.
"""

from core.config.defaults import (
    ProbeTimeouts,
    ProvisioningDefaults,
)
from core.config.env import parse_duration
from core.config.settings import (
    DatabaseTarget,
    RegistryTarget,
    ObjectStoreTarget,
    ServiceSettings,
)

__all__ = [
    "ProbeTimeouts",
    "ProvisioningDefaults",
    "parse_duration",
    "DatabaseTarget",
    "RegistryTarget",
    "ObjectStoreTarget",
    "ServiceSettings",
]
