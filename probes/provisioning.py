# ============================================================================
# STORAGE PROVISIONING PROBE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - Functional storage class test
# PURPOSE: Create a throwaway claim, wait for binding, always delete it
# CREATED: 06 OCT 2026
# ============================================================================
"""
Storage Provisioning Probe

Listing a storage class proves nothing about whether its provisioner
works. This probe submits a real 1Mi claim against one storage class and
watches it reach a terminal phase.

Session lifecycle:

    Created --(create claim)----------------------> Pending
    Created --(storage class lookup / create fails)-> Lost        (no cleanup)
    Pending --(poll: Bound)-----------------------> Bound         healthy
    Pending --(deferred: Pending/Bound at settle)--> Bound         healthy
    Pending --(poll: Lost / unexpected phase)-----> Lost
    Pending --(bind timeout or deadline)----------> TimedOut
    any     --(collector stopping)----------------> Cancelled

Binding mode comes from the storage class:

    Immediate              poll every `poll_interval` until `bind_timeout`
    WaitForFirstConsumer   the claim stays Pending until a pod uses it, so
                           wait `settle_delay`, read it once, accept Pending

Cleanup:
    Once a create call has been issued the claim is deleted exactly once,
    even if the create call itself timed out or was cancelled (the API
    server may still have accepted it). Deletion has its own deadline,
    ignores the stop event and is shielded from task cancellation. A 404
    counts as success. Cleanup failures are logged and never change the
    verdict. A create rejected by the API server needs no cleanup.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Set

from core.config.defaults import ProvisioningDefaults
from core.contracts import Category, EntityKey, ProbeOutcome
from infrastructure.cluster import ProvisioningAPI
from metrics.sink import STORAGE_UP
from probes.classifier import PLATFORM_API_CLASSIFIER
from probes.core import CONTROL_FLOW, Probe, ProbeCancelled, ProbeContext, ProbeTimeout

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 253


# ============================================================================
# ENUMS
# ============================================================================

class BindingMode(str, Enum):
    """volumeBindingMode of a storage class."""
    IMMEDIATE = "Immediate"
    DEFERRED = "WaitForFirstConsumer"

    @classmethod
    def of(cls, storage_class: Dict[str, Any]) -> "BindingMode":
        """Anything other than WaitForFirstConsumer (including absent) is Immediate."""
        if (storage_class or {}).get("volumeBindingMode") == cls.DEFERRED.value:
            return cls.DEFERRED
        return cls.IMMEDIATE


class ProvisioningPhase(str, Enum):
    CREATED = "Created"
    PENDING = "Pending"
    BOUND = "Bound"
    LOST = "Lost"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({
    ProvisioningPhase.BOUND,
    ProvisioningPhase.LOST,
    ProvisioningPhase.TIMED_OUT,
    ProvisioningPhase.CANCELLED,
})

TRANSITIONS: Dict[ProvisioningPhase, FrozenSet[ProvisioningPhase]] = {
    ProvisioningPhase.CREATED: frozenset({
        ProvisioningPhase.PENDING,
        ProvisioningPhase.LOST,
        ProvisioningPhase.TIMED_OUT,
        ProvisioningPhase.CANCELLED,
    }),
    ProvisioningPhase.PENDING: frozenset({
        ProvisioningPhase.BOUND,
        ProvisioningPhase.LOST,
        ProvisioningPhase.TIMED_OUT,
        ProvisioningPhase.CANCELLED,
    }),
    ProvisioningPhase.BOUND: frozenset(),
    ProvisioningPhase.LOST: frozenset(),
    ProvisioningPhase.TIMED_OUT: frozenset(),
    ProvisioningPhase.CANCELLED: frozenset(),
}


def claim_name(
    storage_class: str,
    epoch_ms: Optional[int] = None,
    prefix: str = "health-check-test",
) -> str:
    """<prefix>-<class>-<epoch ms>, lower-cased, at most 253 chars."""
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    name = f"{prefix}-{storage_class}-{epoch_ms}".lower()
    return name[:MAX_NAME_LENGTH].rstrip("-.")


def claim_phase(claim: Dict[str, Any]) -> str:
    return ((claim or {}).get("status") or {}).get("phase", "")


# ============================================================================
# SESSION
# ============================================================================

@dataclass
class ProvisioningSession:
    """State of one provisioning attempt. Never shared between storage classes."""
    storage_class: str
    namespace: str
    request_name: str
    binding_mode: BindingMode = BindingMode.IMMEDIATE
    phase: ProvisioningPhase = ProvisioningPhase.CREATED
    deadline: float = 0.0
    category: Optional[Category] = None
    error_type: Optional[str] = None
    message: Optional[str] = None
    submitted: bool = False
    polls: int = 0
    cleanup_attempts: int = 0
    cleaned_up: bool = False
    history: list = field(default_factory=list)

    def transition(
        self,
        phase: ProvisioningPhase,
        category: Optional[Category] = None,
        error_type: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """
        Move to `phase`.

        Raises:
            ValueError: Transition not allowed from the current phase
        """
        if phase not in TRANSITIONS[self.phase]:
            raise ValueError(
                f"Illegal provisioning transition {self.phase.value} -> {phase.value} "
                f"for {self.request_name}"
            )
        self.history.append(self.phase)
        self.phase = phase
        if phase == ProvisioningPhase.BOUND:
            self.category = Category.HEALTHY
        elif phase.is_terminal:
            self.category = category or Category.UNKNOWN
        self.error_type = error_type
        self.message = message

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def healthy(self) -> bool:
        return self.phase == ProvisioningPhase.BOUND

    def to_outcome(self) -> ProbeOutcome:
        details = {
            "request_name": self.request_name,
            "binding_mode": self.binding_mode.value,
            "phase": self.phase.value,
            "polls": self.polls,
        }
        if self.healthy:
            return ProbeOutcome.ok(self.message, **details)
        return ProbeOutcome.failed(
            self.category or Category.UNKNOWN,
            self.error_type or "unknown",
            self.message,
            **details,
        )


# ============================================================================
# PROBE
# ============================================================================

class StorageClassProbe(Probe):
    """Provisioning test for one storage class."""

    name = "storage_class"
    metric = STORAGE_UP
    timeout_seconds = 45.0
    classifier = PLATFORM_API_CLASSIFIER

    def __init__(
        self,
        api: ProvisioningAPI,
        storage_class: str,
        namespace: str = "default",
        service_name: str = "health-console",
        timeout_seconds: Optional[float] = None,
        timings: Optional[ProvisioningDefaults] = None,
        cleanups: Optional["CleanupTracker"] = None,
    ):
        super().__init__(EntityKey.of(STORAGE_UP, storage_class=storage_class), timeout_seconds)
        self.api = api
        self.storage_class = storage_class
        self.namespace = namespace
        self.service_name = service_name
        self.timings = timings or ProvisioningDefaults()
        self.cleanups = cleanups if cleanups is not None else CleanupTracker()

    def new_session(self, ctx: ProbeContext) -> ProvisioningSession:
        return ProvisioningSession(
            storage_class=self.storage_class,
            namespace=self.namespace,
            request_name=claim_name(self.storage_class, prefix=self.timings.name_prefix),
            deadline=ctx.deadline,
        )

    def claim_manifest(self, session: ProvisioningSession) -> Dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {
                "name": session.request_name,
                "namespace": session.namespace,
                "labels": {
                    "app": self.service_name,
                    "purpose": "storage-test",
                },
            },
            "spec": {
                "storageClassName": self.storage_class,
                "accessModes": [self.timings.access_mode],
                "resources": {"requests": {"storage": self.timings.request_size}},
            },
        }

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        session = await self.provision(ctx)
        return session.to_outcome()

    async def provision(self, ctx: ProbeContext) -> ProvisioningSession:
        """Run one session to a terminal phase and clean up."""
        session = self.new_session(ctx)
        try:
            await self._provision(ctx, session)
        except ProbeTimeout as e:
            session.transition(ProvisioningPhase.TIMED_OUT, Category.TIMEOUT, "timeout", str(e))
        except ProbeCancelled as e:
            session.transition(
                ProvisioningPhase.CANCELLED, Category.CANCELLED, "context_cancelled", str(e)
            )
        except asyncio.CancelledError:
            if not session.is_terminal:
                session.transition(
                    ProvisioningPhase.CANCELLED, Category.CANCELLED, "context_cancelled", "task cancelled"
                )
            raise
        finally:
            if session.submitted:
                await self._cleanup(session)

        self._log_verdict(session)
        return session

    async def _provision(self, ctx: ProbeContext, session: ProvisioningSession) -> None:
        try:
            storage_class = await ctx.call(self.api.get_storage_class(self.storage_class))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            session.transition(
                ProvisioningPhase.LOST, self.classifier.classify(e), "get_failed", str(e)
            )
            return
        session.binding_mode = BindingMode.of(storage_class)

        logger.info(
            f"Testing storage class {self.storage_class} "
            f"({session.binding_mode.value}) with claim {session.request_name}"
        )

        session.submitted = True
        try:
            await ctx.call(self.api.create_claim(self.namespace, self.claim_manifest(session)))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            # An API response means the server rejected it; nothing to delete
            if getattr(e, "status_code", None) is not None:
                session.submitted = False
            session.transition(
                ProvisioningPhase.LOST, self.classifier.classify(e), "pvc_create_failed", str(e)
            )
            return
        session.transition(ProvisioningPhase.PENDING)

        if session.binding_mode == BindingMode.DEFERRED:
            await self._settle(ctx, session)
        else:
            await self._wait_bound(ctx, session)

    async def _settle(self, ctx: ProbeContext, session: ProvisioningSession) -> None:
        await ctx.sleep(self.timings.settle_delay)
        try:
            claim = await ctx.call(self.api.get_claim(self.namespace, session.request_name))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            session.transition(
                ProvisioningPhase.LOST, self.classifier.classify(e), "pvc_get_failed", str(e)
            )
            return
        session.polls += 1

        phase = claim_phase(claim)
        if phase in ("Pending", "Bound"):
            session.transition(
                ProvisioningPhase.BOUND, message=f"claim {phase} (WaitForFirstConsumer)"
            )
            return
        session.transition(
            ProvisioningPhase.LOST,
            Category.PVC_UNEXPECTED_STATE,
            "unexpected_state",
            f"claim in unexpected phase {phase or 'unknown'}",
        )

    async def _wait_bound(self, ctx: ProbeContext, session: ProvisioningSession) -> None:
        bind_deadline = time.monotonic() + self.timings.bind_timeout
        while True:
            remaining = bind_deadline - time.monotonic()
            await ctx.sleep(max(0.0, min(self.timings.poll_interval, remaining)))
            if time.monotonic() >= bind_deadline:
                session.transition(
                    ProvisioningPhase.TIMED_OUT,
                    Category.PVC_BIND_TIMEOUT,
                    "pvc_bind_timeout",
                    f"claim not bound within {self.timings.bind_timeout:.0f}s",
                )
                return

            session.polls += 1
            try:
                claim = await ctx.call(self.api.get_claim(self.namespace, session.request_name))
            except CONTROL_FLOW:
                raise
            except Exception as e:
                logger.warning(f"Failed to read claim {session.request_name}: {e}")
                continue

            phase = claim_phase(claim)
            if phase == "Bound":
                session.transition(ProvisioningPhase.BOUND, message="claim bound")
                return
            if phase == "Lost":
                session.transition(
                    ProvisioningPhase.LOST, Category.PVC_LOST, "pvc_lost", "claim lost"
                )
                return
            logger.debug(f"Claim {session.request_name} is {phase or 'unknown'}, waiting for Bound")

    # ------------------------------------------------------------------
    # CLEANUP
    # ------------------------------------------------------------------

    async def _cleanup(self, session: ProvisioningSession) -> None:
        if session.cleanup_attempts:
            return
        session.cleanup_attempts += 1
        task = asyncio.ensure_future(self._delete(session))
        self.cleanups.track(task)
        await asyncio.shield(task)

    async def _delete(self, session: ProvisioningSession) -> None:
        try:
            await asyncio.wait_for(
                self.api.delete_claim(session.namespace, session.request_name),
                timeout=self.timings.cleanup_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out deleting test claim {session.request_name} "
                f"after {self.timings.cleanup_timeout:.0f}s"
            )
            return
        except Exception as e:
            if getattr(e, "status_code", None) == 404:
                session.cleaned_up = True
                logger.debug(f"Test claim {session.request_name} already gone")
                return
            logger.warning(f"Failed to delete test claim {session.request_name}: {e}")
            return

        session.cleaned_up = True
        logger.info(f"Cleaned up test claim {session.request_name} for storage class {self.storage_class}")

    def _log_verdict(self, session: ProvisioningSession) -> None:
        if session.healthy:
            logger.info(
                f"Storage class {self.storage_class} is functional "
                f"({session.binding_mode.value}, {session.polls} poll(s))"
            )
        elif session.phase == ProvisioningPhase.CANCELLED:
            logger.info(f"Storage class {self.storage_class} test cancelled")
        else:
            logger.warning(
                f"Storage class {self.storage_class} test ended {session.phase.value}: "
                f"{session.message} [reason: {session.category.value}]"
            )


class CleanupTracker:
    """
    In-flight claim deletions started by one owner.

    A shielded cleanup task outlives the probe task that started it, so
    the owner keeps a strong reference until it finishes and can wait on
    exactly its own deletions at shutdown.
    """

    def __init__(self) -> None:
        self._tasks: Set["asyncio.Task[None]"] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def track(self, task: "asyncio.Task[None]") -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, timeout: float) -> None:
        """Give tracked cleanups up to `timeout` seconds to finish."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} test claim cleanup(s) still running at shutdown")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "BindingMode",
    "ProvisioningPhase",
    "TRANSITIONS",
    "ProvisioningSession",
    "StorageClassProbe",
    "claim_name",
    "claim_phase",
    "CleanupTracker",
]
