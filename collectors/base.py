# ============================================================================
# COLLECTOR BASE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Collectors - Schedule, fan-out, reporting, start/stop
# PURPOSE: Run one backend family's probes on a fixed interval
# CREATED: 06 OCT 2026
# ============================================================================
"""
Collector Base

A collector owns the probes of one backend family and runs them on a
fixed-rate schedule:

    start()  -> schedule task: immediate cycle, then every `interval`
                (cycles never overlap; ticks missed by a slow cycle are skipped)
    stop()   -> set the stop event, wait up to `shutdown_timeout` for the
                in-flight cycle, then cancel the task. Idempotent.

Each cycle is one structured fan-out (asyncio.gather, one task per
entity). Every ProbeResult is reported exactly once:

    <family>_up{..., error_reason}                 via MetricLabelRegistry
    health_check_duration_seconds{collector}       always
    health_check_errors_total{collector,error_type} when unhealthy

Once stop() has begun, arriving results are discarded so a shutdown
never overwrites real outcomes with "cancelled".
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.contracts import ProbeResult
from core.logging import log_checkpoint, log_context
from metrics.label_registry import MetricLabelRegistry
from metrics.sink import CHECK_DURATION, CHECK_ERRORS, MetricSink
from probes.core import Probe

logger = logging.getLogger(__name__)


class CollectorSetupError(Exception):
    """A collector could not be constructed (e.g. no cluster configuration)."""
    pass


class Collector(ABC):
    """
    Base class for collectors.

    Subclasses implement probes(); collectors with a discovery step
    override collect() instead.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        sink: MetricSink,
        shutdown_timeout: float = 10.0,
    ):
        self.name = name
        self.interval = interval
        self.sink = sink
        self.shutdown_timeout = shutdown_timeout

        self._registries: Dict[str, MetricLabelRegistry] = {}
        self._registries_lock = threading.Lock()

        # State
        self._running = False
        self._stopping = False
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._cycle_lock = asyncio.Lock()

        # Stats
        self._cycles = 0
        self._last_cycle_at: Optional[datetime] = None
        self._last_cycle_duration: Optional[float] = None
        self._last_unhealthy = 0
        self._discarded = 0

    # =========================================================================
    # PROBES
    # =========================================================================

    @abstractmethod
    def probes(self) -> List[Probe]:
        """Probes for one cycle."""
        pass

    async def collect(self) -> List[ProbeResult]:
        """One fan-out over probes()."""
        return await self.run_probes(self.probes())

    async def run_probes(self, probes: List[Probe]) -> List[ProbeResult]:
        if not probes:
            return []
        return list(await asyncio.gather(*(self._run_probe(p) for p in probes)))

    async def _run_probe(self, probe: Probe) -> ProbeResult:
        with log_context(
            collector=self.name,
            probe=probe.name,
            entity=probe.entity.name,
            cycle=self._cycles + 1,
        ):
            result = await probe.run(probe.new_context(self._stop_event))
            self.report(result)
        return result

    # =========================================================================
    # REPORTING
    # =========================================================================

    def registry_for(self, metric: str) -> MetricLabelRegistry:
        with self._registries_lock:
            registry = self._registries.get(metric)
            if registry is None:
                registry = MetricLabelRegistry(self.sink, metric)
                self._registries[metric] = registry
            return registry

    def report(self, result: ProbeResult) -> None:
        """Publish one result. Discarded once stop() has begun."""
        if self._stopping:
            self._discarded += 1
            logger.debug(f"Discarding {result.check} result for {result.entity.name}: collector stopping")
            return

        self.registry_for(result.entity.metric).report(
            result.entity, result.category, result.gauge_value
        )
        self.record(result)

    def record(self, result: ProbeResult) -> None:
        """Duration histogram and, on failure, the error counter."""
        try:
            self.sink.observe_histogram(
                CHECK_DURATION, {"collector": result.check}, result.latency_seconds
            )
            if not result.healthy:
                self.sink.increment_counter(
                    CHECK_ERRORS,
                    {"collector": result.check, "error_type": result.error_type or "unknown"},
                )
        except Exception as e:
            logger.error(f"Failed to record {result.check} metrics: {e}")

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def run_cycle(self) -> List[ProbeResult]:
        """
        Run exactly one cycle and return its results.

        Used by the schedule loop and directly by tests.
        """
        async with self._cycle_lock:
            start = time.monotonic()
            with log_context(collector=self.name, cycle=self._cycles + 1):
                results = await self.collect()

                self._cycles += 1
                self._last_cycle_at = datetime.now(timezone.utc)
                self._last_cycle_duration = time.monotonic() - start
                self._last_unhealthy = sum(1 for r in results if not r.healthy)

                log_checkpoint(
                    "cycle_completed",
                    {
                        "probes": len(results),
                        "unhealthy": self._last_unhealthy,
                        "duration_ms": round(self._last_cycle_duration * 1000, 1),
                    },
                    logger=logger,
                )
            return results

    async def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        logger.info(f"Collector {self.name} started (interval={self.interval}s)")

        while not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Collector {self.name} cycle failed: {e}")

            next_tick += self.interval
            now = loop.time()
            if now > next_tick:
                missed = int((now - next_tick) // self.interval) + 1
                next_tick += missed * self.interval
                logger.warning(
                    f"Collector {self.name} cycle overran interval, skipping {missed} tick(s)"
                )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
                break
            except asyncio.TimeoutError:
                pass

        logger.info(f"Collector {self.name} schedule loop exited")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        if self._running:
            logger.warning(f"Collector {self.name} already running")
            return

        self._running = True
        self._stopping = False
        self._stop_event.clear()
        self._task = asyncio.create_task(self._schedule(), name=f"collector-{self.name}")

    async def stop(self) -> None:
        """
        Stop gracefully. Safe to call more than once.

        In-flight probes see the stop event and finish as cancelled; after
        `shutdown_timeout` the schedule task is cancelled outright.
        """
        if not self._running or self._stopping:
            return

        logger.info(f"Stopping collector {self.name}")
        self._stopping = True
        self._stop_event.set()

        if self._task:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Collector {self.name} did not stop within {self.shutdown_timeout}s, cancelling"
                )
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            except Exception as e:
                logger.error(f"Collector {self.name} task failed during shutdown: {e}")
            self._task = None

        try:
            await self.close()
        except Exception as e:
            logger.warning(f"Collector {self.name} close failed: {e}")

        self._running = False
        logger.info(
            f"Collector {self.name} stopped (cycles={self._cycles}, discarded={self._discarded})"
        )

    async def close(self) -> None:
        """Release collector-owned resources."""
        pass

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._running and not self._stopping

    @property
    def ready(self) -> bool:
        """True once at least one cycle has completed."""
        return self._cycles > 0

    def entity_states(self) -> Dict[str, Dict[str, str]]:
        """metric -> {entity name: category} from the label registries."""
        with self._registries_lock:
            registries = list(self._registries.values())
        return {
            registry.metric: {
                entity.name: category.value
                for entity, category in registry.snapshot().items()
            }
            for registry in registries
        }

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "running": self.running,
            "ready": self.ready,
            "interval_seconds": self.interval,
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at,
            "last_cycle_duration_seconds": self._last_cycle_duration,
            "unhealthy": self._last_unhealthy,
            "entities": self.entity_states(),
        }


__all__ = ["Collector", "CollectorSetupError"]
