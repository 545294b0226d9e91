# ============================================================================
# PROVISIONING PROBE TESTS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Tests - Storage class provisioning sessions
# PURPOSE: Verify binding-mode handling, phase transitions and cleanup
# CREATED: 07 OCT 2026
# ============================================================================
"""
Provisioning Probe Tests

Covers:
1. Immediate binding: bound after a few polls, or timed out at the bind deadline
2. WaitForFirstConsumer: Pending after settle is healthy, Lost is not
3. Create rejected by the API -> no cleanup
4. Create failed in transport / timed out / cancelled -> cleanup
5. Cleanup exactly once for every terminal state; 404 counts as success
6. Cleanup survives task cancellation, is tracked per probe and bounded by its own timeout
7. Session transition validation
8. Claim naming and manifest shape

Run with:
    pytest tests/test_provisioning.py -v
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx
import pytest

from core.config.defaults import ProvisioningDefaults
from core.contracts import Category
from infrastructure.cluster import ClusterAPIError, ProvisioningAPI
from probes.core import ProbeContext
from probes.provisioning import (
    BindingMode,
    ProvisioningPhase,
    ProvisioningSession,
    StorageClassProbe,
    claim_name,
)


# ============================================================================
# FAKES
# ============================================================================

class FakeProvisioningAPI(ProvisioningAPI):
    """
    In-memory storage API.

    `phases` is consumed one per get_claim(); the last entry repeats.
    """

    def __init__(
        self,
        binding_mode: Optional[str] = "Immediate",
        phases: Optional[List[str]] = None,
        get_class_error: Optional[Exception] = None,
        create_error: Optional[Exception] = None,
        create_delay: float = 0.0,
        delete_error: Optional[Exception] = None,
        delete_delay: float = 0.0,
    ):
        self.binding_mode = binding_mode
        self.phases = list(phases or ["Bound"])
        self.get_class_error = get_class_error
        self.create_error = create_error
        self.create_delay = create_delay
        self.delete_error = delete_error
        self.delete_delay = delete_delay

        self.created: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.claim_reads = 0

    async def get_storage_class(self, name: str) -> Dict[str, Any]:
        if self.get_class_error:
            raise self.get_class_error
        storage_class = {"metadata": {"name": name}}
        if self.binding_mode:
            storage_class["volumeBindingMode"] = self.binding_mode
        return storage_class

    async def create_claim(self, namespace: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        self.created.append(manifest)
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.create_error:
            raise self.create_error
        return manifest

    async def get_claim(self, namespace: str, name: str) -> Dict[str, Any]:
        self.claim_reads += 1
        phase = self.phases.pop(0) if len(self.phases) > 1 else self.phases[0]
        return {"metadata": {"name": name}, "status": {"phase": phase}}

    async def delete_claim(self, namespace: str, name: str) -> None:
        self.deleted.append(name)
        if self.delete_delay:
            await asyncio.sleep(self.delete_delay)
        if self.delete_error:
            raise self.delete_error


FAST = ProvisioningDefaults(
    bind_timeout=0.3,
    poll_interval=0.01,
    settle_delay=0.01,
    cleanup_timeout=0.5,
)


def make_probe(api: ProvisioningAPI, timeout: float = 5.0, timings=FAST) -> StorageClassProbe:
    return StorageClassProbe(
        api,
        "fast-ssd",
        namespace="probes",
        service_name="health-console",
        timeout_seconds=timeout,
        timings=timings,
    )


def provision(probe: StorageClassProbe) -> ProvisioningSession:
    async def scenario():
        return await probe.provision(probe.new_context())

    return asyncio.run(scenario())


# ============================================================================
# IMMEDIATE BINDING
# ============================================================================

class TestImmediateBinding:

    def test_binds_after_polls(self):
        api = FakeProvisioningAPI(phases=["Pending", "Pending", "Pending", "Bound"])
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.BOUND
        assert session.healthy
        assert session.polls == 4
        assert session.binding_mode == BindingMode.IMMEDIATE
        assert api.deleted == [session.request_name]
        assert session.cleaned_up

    def test_never_binds_times_out(self):
        api = FakeProvisioningAPI(phases=["Pending"])
        timings = ProvisioningDefaults(bind_timeout=0.1, poll_interval=0.01, cleanup_timeout=0.5)
        probe = make_probe(api, timings=timings)

        start = time.monotonic()
        session = provision(probe)
        elapsed = time.monotonic() - start

        assert session.phase == ProvisioningPhase.TIMED_OUT
        assert session.category == Category.PVC_BIND_TIMEOUT
        assert session.error_type == "pvc_bind_timeout"
        assert elapsed >= 0.1
        assert len(api.deleted) == 1

    def test_lost(self):
        api = FakeProvisioningAPI(phases=["Pending", "Lost"])
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.LOST
        assert session.category == Category.PVC_LOST
        assert session.error_type == "pvc_lost"
        assert len(api.deleted) == 1

    def test_missing_binding_mode_is_immediate(self):
        api = FakeProvisioningAPI(binding_mode=None, phases=["Bound"])
        session = provision(make_probe(api))

        assert session.binding_mode == BindingMode.IMMEDIATE
        assert session.healthy

    def test_probe_deadline_before_bind_deadline(self):
        api = FakeProvisioningAPI(phases=["Pending"])
        timings = ProvisioningDefaults(bind_timeout=5.0, poll_interval=0.01, cleanup_timeout=0.5)
        session = provision(make_probe(api, timeout=0.1, timings=timings))

        assert session.phase == ProvisioningPhase.TIMED_OUT
        assert session.category == Category.TIMEOUT
        assert len(api.deleted) == 1


# ============================================================================
# DEFERRED BINDING
# ============================================================================

class TestDeferredBinding:

    def test_pending_after_settle_is_healthy(self):
        api = FakeProvisioningAPI(binding_mode="WaitForFirstConsumer", phases=["Pending"])
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.BOUND
        assert session.healthy
        assert session.binding_mode == BindingMode.DEFERRED
        assert api.claim_reads == 1
        assert len(api.deleted) == 1

    def test_lost_is_unhealthy(self):
        api = FakeProvisioningAPI(binding_mode="WaitForFirstConsumer", phases=["Lost"])
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.LOST
        assert session.category == Category.PVC_UNEXPECTED_STATE
        assert session.error_type == "unexpected_state"
        assert len(api.deleted) == 1


# ============================================================================
# CREATE FAILURES
# ============================================================================

class TestCreateFailures:

    def test_rejected_create_needs_no_cleanup(self):
        api = FakeProvisioningAPI(create_error=ClusterAPIError(403, "Forbidden", "quota"))
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.LOST
        assert session.category == Category.FORBIDDEN
        assert session.error_type == "pvc_create_failed"
        assert api.deleted == []

    def test_transport_failure_still_cleans_up(self):
        api = FakeProvisioningAPI(create_error=httpx.ReadError("connection reset by peer"))
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.LOST
        assert session.error_type == "pvc_create_failed"
        assert api.deleted == [session.request_name]

    def test_create_timeout_still_cleans_up(self):
        api = FakeProvisioningAPI(create_delay=2.0)
        session = provision(make_probe(api, timeout=0.1))

        assert session.phase == ProvisioningPhase.TIMED_OUT
        assert session.category == Category.TIMEOUT
        assert api.deleted == [session.request_name]

    def test_storage_class_lookup_failure(self):
        api = FakeProvisioningAPI(get_class_error=ClusterAPIError(404, "NotFound", "gone"))
        session = provision(make_probe(api))

        assert session.phase == ProvisioningPhase.LOST
        assert session.category == Category.RESOURCE_NOT_FOUND
        assert session.error_type == "get_failed"
        assert api.created == []
        assert api.deleted == []


# ============================================================================
# CLEANUP
# ============================================================================

class TestCleanup:

    @pytest.mark.parametrize("api_kwargs", [
        {"phases": ["Bound"]},
        {"phases": ["Pending", "Lost"]},
        {"binding_mode": "WaitForFirstConsumer", "phases": ["Pending"]},
        {"binding_mode": "WaitForFirstConsumer", "phases": ["Failed"]},
    ], ids=["bound", "lost", "deferred-pending", "deferred-unexpected"])
    def test_exactly_once_per_terminal_state(self, api_kwargs):
        api = FakeProvisioningAPI(**api_kwargs)
        session = provision(make_probe(api))

        assert session.is_terminal
        assert session.cleanup_attempts == 1
        assert api.deleted == [session.request_name]

    def test_not_found_counts_as_cleaned(self):
        api = FakeProvisioningAPI(delete_error=ClusterAPIError(404, "NotFound", "already gone"))
        session = provision(make_probe(api))

        assert session.cleaned_up
        assert session.healthy

    def test_delete_failure_does_not_change_verdict(self):
        api = FakeProvisioningAPI(delete_error=ClusterAPIError(500, "InternalError", "etcd down"))
        session = provision(make_probe(api))

        assert session.healthy
        assert not session.cleaned_up
        assert session.cleanup_attempts == 1

    def test_second_cleanup_is_noop(self):
        api = FakeProvisioningAPI()
        probe = make_probe(api)

        async def scenario():
            session = await probe.provision(probe.new_context())
            await probe._cleanup(session)
            return session

        session = asyncio.run(scenario())
        assert len(api.deleted) == 1

    def test_stop_event_cancels_and_cleans_up(self):
        api = FakeProvisioningAPI(phases=["Pending"])
        timings = ProvisioningDefaults(bind_timeout=5.0, poll_interval=0.01, cleanup_timeout=0.5)
        probe = make_probe(api, timings=timings)

        async def scenario():
            stop = asyncio.Event()
            task = asyncio.create_task(probe.provision(ProbeContext(stop, timeout=5.0)))
            await asyncio.sleep(0.05)
            stop.set()
            return await task

        session = asyncio.run(scenario())

        assert session.phase == ProvisioningPhase.CANCELLED
        assert session.category == Category.CANCELLED
        assert api.deleted == [session.request_name]

    def test_cleanup_survives_task_cancellation(self):
        api = FakeProvisioningAPI(phases=["Pending"])
        timings = ProvisioningDefaults(bind_timeout=5.0, poll_interval=0.01, cleanup_timeout=0.5)
        probe = make_probe(api, timings=timings)

        async def scenario():
            task = asyncio.create_task(probe.provision(probe.new_context()))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert len(api.deleted) == 1

    def test_hanging_delete_is_bounded(self):
        api = FakeProvisioningAPI(delete_delay=30.0)
        timings = ProvisioningDefaults(bind_timeout=1.0, poll_interval=0.01, cleanup_timeout=0.2)
        probe = make_probe(api, timings=timings)

        started = time.monotonic()
        session = provision(probe)
        elapsed = time.monotonic() - started

        assert session.phase == ProvisioningPhase.BOUND
        assert session.healthy
        assert not session.cleaned_up
        assert session.cleanup_attempts == 1
        assert elapsed < 2.0

    def test_cancelled_cleanup_is_tracked_until_done(self):
        api = FakeProvisioningAPI(phases=["Pending"], delete_delay=0.1)
        timings = ProvisioningDefaults(bind_timeout=5.0, poll_interval=0.01, cleanup_timeout=1.0)
        probe = make_probe(api, timings=timings)

        async def scenario():
            task = asyncio.create_task(probe.provision(probe.new_context()))
            await asyncio.sleep(0.05)
            task.cancel()
            await asyncio.sleep(0.01)
            # a second cancel abandons the shielded delete to the tracker
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            in_flight = len(probe.cleanups)
            await probe.cleanups.drain(1.0)
            return in_flight, len(probe.cleanups)

        in_flight, remaining = asyncio.run(scenario())
        assert (in_flight, remaining) == (1, 0)
        assert len(api.deleted) == 1

    def test_drain_gives_up_after_timeout(self):
        api = FakeProvisioningAPI(phases=["Pending"], delete_delay=5.0)
        timings = ProvisioningDefaults(bind_timeout=5.0, poll_interval=0.01, cleanup_timeout=5.0)
        probe = make_probe(api, timings=timings)

        async def scenario():
            task = asyncio.create_task(probe.provision(probe.new_context()))
            await asyncio.sleep(0.05)
            task.cancel()
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            started = time.monotonic()
            await probe.cleanups.drain(0.1)
            return time.monotonic() - started, len(probe.cleanups)

        waited, remaining = asyncio.run(scenario())
        assert waited < 1.0
        assert remaining == 1

    def test_probe_run_reports_storage_class_entity(self):
        api = FakeProvisioningAPI()
        probe = make_probe(api)

        result = asyncio.run(probe.run())

        assert result.healthy
        assert result.check == "storage_class"
        assert result.entity.label_dict == {"storage_class": "fast-ssd"}
        assert result.details["binding_mode"] == "Immediate"


# ============================================================================
# SESSION
# ============================================================================

class TestProvisioningSession:

    def make_session(self) -> ProvisioningSession:
        return ProvisioningSession(
            storage_class="fast", namespace="default", request_name="health-check-test-fast-1"
        )

    def test_legal_path(self):
        session = self.make_session()
        session.transition(ProvisioningPhase.PENDING)
        session.transition(ProvisioningPhase.BOUND)

        assert session.healthy
        assert session.category == Category.HEALTHY
        assert session.history == [ProvisioningPhase.CREATED, ProvisioningPhase.PENDING]

    def test_created_to_bound_is_illegal(self):
        session = self.make_session()
        with pytest.raises(ValueError):
            session.transition(ProvisioningPhase.BOUND)

    def test_terminal_is_final(self):
        session = self.make_session()
        session.transition(ProvisioningPhase.LOST, Category.PVC_LOST, "pvc_lost")
        with pytest.raises(ValueError):
            session.transition(ProvisioningPhase.PENDING)

    def test_outcome_of_failed_session(self):
        session = self.make_session()
        session.transition(ProvisioningPhase.PENDING)
        session.transition(ProvisioningPhase.TIMED_OUT, Category.PVC_BIND_TIMEOUT, "pvc_bind_timeout", "slow")

        outcome = session.to_outcome()
        assert not outcome.healthy
        assert outcome.category == Category.PVC_BIND_TIMEOUT
        assert outcome.error_type == "pvc_bind_timeout"
        assert outcome.details["phase"] == "TimedOut"


# ============================================================================
# NAMING / MANIFEST
# ============================================================================

class TestClaimNaming:

    def test_format(self):
        assert claim_name("Fast-SSD", epoch_ms=1700000000000) == "health-check-test-fast-ssd-1700000000000"

    def test_truncated(self):
        name = claim_name("a" * 300, epoch_ms=1)
        assert len(name) <= 253
        assert not name.endswith("-")

    def test_prefix_from_timings(self):
        api = FakeProvisioningAPI()
        timings = ProvisioningDefaults(name_prefix="probe-pvc")
        probe = make_probe(api, timings=timings)
        session = probe.new_session(probe.new_context())
        assert session.request_name.startswith("probe-pvc-fast-ssd-")

    def test_manifest(self):
        api = FakeProvisioningAPI()
        session = provision(make_probe(api))

        manifest = api.created[0]
        assert manifest["kind"] == "PersistentVolumeClaim"
        assert manifest["metadata"]["name"] == session.request_name
        assert manifest["metadata"]["namespace"] == "probes"
        assert manifest["metadata"]["labels"] == {"app": "health-console", "purpose": "storage-test"}
        assert manifest["spec"]["storageClassName"] == "fast-ssd"
        assert manifest["spec"]["accessModes"] == ["ReadWriteOnce"]
        assert manifest["spec"]["resources"]["requests"]["storage"] == "1Mi"

    def test_binding_mode_of(self):
        assert BindingMode.of({}) == BindingMode.IMMEDIATE
        assert BindingMode.of({"volumeBindingMode": "Immediate"}) == BindingMode.IMMEDIATE
        assert BindingMode.of({"volumeBindingMode": "WaitForFirstConsumer"}) == BindingMode.DEFERRED
