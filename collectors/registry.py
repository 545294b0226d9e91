# ============================================================================
# REGISTRY COLLECTOR
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Collectors - Container registries
# PURPOSE: One RegistryProbe per configured registry per cycle
# CREATED: 06 OCT 2026
# ============================================================================

import logging
from typing import List, Optional, Sequence

import httpx

from collectors.base import Collector
from core.config.settings import RegistryTarget
from metrics.sink import MetricSink
from probes.core import Probe
from probes.registry import RegistryProbe

logger = logging.getLogger(__name__)


class RegistryCollector(Collector):
    """registry_up for every REGISTRY_<N>_* target."""

    def __init__(
        self,
        targets: Sequence[RegistryTarget],
        sink: MetricSink,
        interval: float = 30.0,
        timeout_seconds: float = 10.0,
        shutdown_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__("registry", interval, sink, shutdown_timeout)
        self._probes = [
            RegistryProbe(target, timeout_seconds=timeout_seconds, transport=transport)
            for target in targets
        ]
        logger.info(f"Registry collector configured for {len(self._probes)} registry(ies)")

    def probes(self) -> List[Probe]:
        return list(self._probes)


__all__ = ["RegistryCollector"]
