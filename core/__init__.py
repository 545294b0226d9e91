# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Core module initialization
# PURPOSE: Export core contracts
# CREATED: 06 OCT 2026
# ============================================================================

from core.contracts import Category, EntityKey, ProbeOutcome, ProbeResult

__all__ = [
    "Category",
    "EntityKey",
    "ProbeOutcome",
    "ProbeResult",
]
