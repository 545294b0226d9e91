# ============================================================================
# OBJECT STORE PROBE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - S3-compatible object store
# PURPOSE: ListBuckets against a MinIO / S3 endpoint
# CREATED: 06 OCT 2026
# ============================================================================
"""
Object Store Probe

The minio SDK is synchronous, so list_buckets() runs in a worker thread.
The urllib3 pool handed to the client carries the probe timeout and no
retries, which bounds the thread even after the probe has given up on it.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import urllib3
from minio import Minio

from core.config.settings import ObjectStoreTarget
from core.contracts import Category, EntityKey, ProbeOutcome
from metrics.sink import OBJECT_STORE_UP
from probes.classifier import OBJECT_STORE_CLASSIFIER
from probes.core import CONTROL_FLOW, Probe, ProbeContext

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ObjectStoreTarget, float], Any]


def build_minio_client(target: ObjectStoreTarget, timeout: float) -> Minio:
    http_client = urllib3.PoolManager(
        timeout=urllib3.Timeout(connect=timeout, read=timeout),
        retries=urllib3.Retry(total=0, connect=0, read=0, redirect=0),
        cert_reqs="CERT_REQUIRED" if target.use_ssl else "CERT_NONE",
    )
    return Minio(
        target.endpoint,
        access_key=target.access_key or None,
        secret_key=target.secret_key or None,
        secure=target.use_ssl,
        http_client=http_client,
    )


def object_store_entity(target: ObjectStoreTarget) -> EntityKey:
    return EntityKey.of(OBJECT_STORE_UP, endpoint=target.endpoint)


class ObjectStoreProbe(Probe):
    name = "object_store"
    metric = OBJECT_STORE_UP
    timeout_seconds = 10.0
    classifier = OBJECT_STORE_CLASSIFIER

    def __init__(
        self,
        target: ObjectStoreTarget,
        timeout_seconds: Optional[float] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        super().__init__(object_store_entity(target), timeout_seconds)
        self.target = target
        self._client_factory = client_factory or build_minio_client

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        try:
            client = self._client_factory(self.target, self.timeout_seconds)
        except Exception as e:
            logger.warning(
                f"Failed to create object store client for {self.target.endpoint}: {e} "
                f"[reason: {Category.CLIENT_CREATION_FAILED.value}]"
            )
            return ProbeOutcome.failed(
                Category.CLIENT_CREATION_FAILED, "client_creation_failed", str(e)
            )

        try:
            buckets = await ctx.call(asyncio.to_thread(client.list_buckets))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "unreachable", f"ListBuckets on {self.target.endpoint}")

        count = len(buckets or [])
        logger.info(f"Object store {self.target.endpoint} is healthy ({count} bucket(s))")
        return ProbeOutcome.ok("ListBuckets succeeded", buckets=count)


__all__ = ["ObjectStoreProbe", "build_minio_client", "object_store_entity"]
