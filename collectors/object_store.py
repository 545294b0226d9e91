# ============================================================================
# OBJECT STORE COLLECTOR
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Collectors - S3-compatible endpoint
# PURPOSE: One ObjectStoreProbe per cycle
# CREATED: 06 OCT 2026
# ============================================================================

from typing import List, Optional

from collectors.base import Collector
from core.config.settings import ObjectStoreTarget
from metrics.sink import MetricSink
from probes.core import Probe
from probes.object_store import ClientFactory, ObjectStoreProbe


class ObjectStoreCollector(Collector):
    def __init__(
        self,
        target: ObjectStoreTarget,
        sink: MetricSink,
        interval: float = 30.0,
        timeout_seconds: float = 10.0,
        shutdown_timeout: float = 10.0,
        client_factory: Optional[ClientFactory] = None,
    ):
        super().__init__("object_store", interval, sink, shutdown_timeout)
        self._probe = ObjectStoreProbe(
            target, timeout_seconds=timeout_seconds, client_factory=client_factory
        )

    def probes(self) -> List[Probe]:
        return [self._probe]


__all__ = ["ObjectStoreCollector"]
