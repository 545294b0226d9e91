# ============================================================================
# DATABASE COLLECTOR
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Collectors - PostgreSQL instances
# PURPOSE: One DatabaseProbe per configured database per cycle
# CREATED: 06 OCT 2026
# ============================================================================

import logging
from typing import List, Optional, Sequence

from collectors.base import Collector
from core.config.settings import DatabaseTarget
from metrics.sink import MetricSink
from probes.core import Probe
from probes.database import Connect, DatabaseProbe

logger = logging.getLogger(__name__)


class DatabaseCollector(Collector):
    """database_up for every DB_<N>_* target."""

    def __init__(
        self,
        targets: Sequence[DatabaseTarget],
        sink: MetricSink,
        interval: float = 30.0,
        timeout_seconds: float = 5.0,
        shutdown_timeout: float = 10.0,
        connect: Optional[Connect] = None,
    ):
        super().__init__("database", interval, sink, shutdown_timeout)
        self._probes = [
            DatabaseProbe(target, timeout_seconds=timeout_seconds, connect=connect)
            for target in targets
        ]
        logger.info(f"Database collector configured for {len(self._probes)} instance(s)")

    def probes(self) -> List[Probe]:
        return list(self._probes)


__all__ = ["DatabaseCollector"]
