# ============================================================================
# PROBE CORE TYPES
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - Base class and invocation context
# PURPOSE: Deadline-bounded, cancellable probe execution
# CREATED: 06 OCT 2026
# ============================================================================
"""
Probe Core Types

A probe performs one minimal real operation against one entity and
returns a ProbeResult. It never retries; the next cycle is the retry.

Every await that touches the network goes through ProbeContext.call(),
which bounds it by the probe's deadline and races it against the
collector's stop event:

    deadline elapsed   -> ProbeTimeout   -> category "timeout"
    stop event set     -> ProbeCancelled -> category "cancelled"
    anything else      -> classifier     -> family-specific category

ProbeTimeout and ProbeCancelled are internal control flow and never
escape Probe.run().
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

from core.contracts import Category, EntityKey, ProbeOutcome, ProbeResult
from probes.classifier import Classifier, UNKNOWN_CLASSIFIER

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ProbeTimeout(Exception):
    """The probe's deadline elapsed before the operation finished."""
    pass


class ProbeCancelled(Exception):
    """The owning collector began shutting down."""
    pass


# Re-raise these from step-level except blocks
CONTROL_FLOW = (ProbeTimeout, ProbeCancelled)


# ============================================================================
# CONTEXT
# ============================================================================

class ProbeContext:
    """
    Deadline and stop signal for one probe invocation.

    Args:
        stop_event: Set by Collector.stop(); shared by every probe of a collector
        timeout: Seconds from now until the invocation deadline
    """

    def __init__(self, stop_event: Optional[asyncio.Event] = None, timeout: float = 10.0):
        self.stop_event = stop_event or asyncio.Event()
        self.timeout = timeout
        self.deadline = time.monotonic() + timeout

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    async def call(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Await `awaitable`, bounded by the deadline (or `timeout` if tighter).

        Raises:
            ProbeCancelled: stop event was set first
            ProbeTimeout: the bound elapsed first
        """
        if self.stop_event.is_set():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise ProbeCancelled("collector stopping")

        limit = self.remaining()
        operation_bound = timeout is not None and timeout < limit
        if operation_bound:
            limit = timeout
        if limit <= 0:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise ProbeTimeout(f"deadline of {self.timeout:.1f}s exceeded")

        work = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self.stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, stopper},
                timeout=limit,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            stopper.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Abandoned operation raised after cancel: {e}")

        if self.stop_event.is_set():
            raise ProbeCancelled("collector stopping")
        if operation_bound:
            raise ProbeTimeout(f"operation timeout of {timeout:.1f}s exceeded")
        raise ProbeTimeout(f"deadline of {self.timeout:.1f}s exceeded")

    async def sleep(self, seconds: float) -> None:
        """Sleep, waking early on stop. Raises ProbeTimeout if it would pass the deadline."""
        if self.stop_event.is_set():
            raise ProbeCancelled("collector stopping")
        remaining = self.remaining()
        wait_for = min(seconds, remaining)
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=wait_for)
        except asyncio.TimeoutError:
            pass
        if self.stop_event.is_set():
            raise ProbeCancelled("collector stopping")
        if seconds > remaining:
            raise ProbeTimeout(f"deadline of {self.timeout:.1f}s exceeded")


# ============================================================================
# PROBE BASE
# ============================================================================

class Probe(ABC):
    """
    Base class for probes.

    Subclasses set `name`, `metric`, `timeout_seconds` and `classifier`
    and implement check().

    Attributes:
        name: Collector label for duration and error metrics ("database", "coredns")
        metric: Gauge the entity reports into
        timeout_seconds: Per-invocation deadline
        classifier: Maps unexpected exceptions to a Category
        entity: Identity of the monitored instance
    """

    name: str = "unnamed"
    metric: str = ""
    timeout_seconds: float = 10.0
    classifier: Classifier = UNKNOWN_CLASSIFIER
    # Error type for exceptions that escape check()
    unexpected_error_type: str = "unexpected_error"

    def __init__(self, entity: EntityKey, timeout_seconds: Optional[float] = None):
        self.entity = entity
        if timeout_seconds is not None:
            self.timeout_seconds = timeout_seconds

    @property
    def check_name(self) -> str:
        return self.name

    @abstractmethod
    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        """Perform the operation; may raise, run() classifies."""
        pass

    def failure(
        self,
        error: Exception,
        error_type: str,
        action: str,
        classifier: Optional[Classifier] = None,
    ) -> ProbeOutcome:
        """Classify an expected step failure and log it at WARNING."""
        category = (classifier or self.classifier).classify(error)
        logger.warning(
            f"{self.name}: {action} failed for {self.entity.name}: {error} [reason: {category.value}]"
        )
        return ProbeOutcome.failed(category, error_type, str(error))

    def new_context(self, stop_event: Optional[asyncio.Event] = None) -> ProbeContext:
        return ProbeContext(stop_event, self.timeout_seconds)

    async def run(self, ctx: Optional[ProbeContext] = None) -> ProbeResult:
        """
        Execute the probe and time it.

        Never raises except asyncio.CancelledError.
        """
        if ctx is None:
            ctx = self.new_context()

        start = time.monotonic()
        try:
            outcome = await self.check(ctx)
        except ProbeTimeout as e:
            logger.warning(f"{self.name} probe for {self.entity.name} timed out: {e} [reason: timeout]")
            outcome = ProbeOutcome.failed(Category.TIMEOUT, "timeout", str(e))
        except ProbeCancelled as e:
            logger.info(f"{self.name} probe for {self.entity.name} cancelled: {e}")
            outcome = ProbeOutcome.failed(Category.CANCELLED, "context_cancelled", str(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            category = self.classifier.classify(e)
            logger.exception(
                f"{self.name} probe for {self.entity.name} raised: {e} [reason: {category.value}]"
            )
            outcome = ProbeOutcome.failed(category, self.unexpected_error_type, str(e))

        latency = time.monotonic() - start
        return ProbeResult.from_outcome(self.entity, self.check_name, outcome, latency)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.entity.name}>"


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ProbeTimeout",
    "ProbeCancelled",
    "CONTROL_FLOW",
    "ProbeContext",
    "Probe",
]
