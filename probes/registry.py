# ============================================================================
# REGISTRY PROBE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - Container registry v2 API
# PURPOSE: GET /v2/ and accept 200 or 401
# CREATED: 06 OCT 2026
# ============================================================================
"""
Registry Probe

The Docker Registry HTTP API v2 answers GET /v2/ with 200 (anonymous
access allowed) or 401 (credentials required). Both prove the registry
is serving; anything else is classified by status code.

Error types:
    request_failed   URL could not be turned into a request
    unreachable      transport error (DNS, TLS, refused, timeout, ...)
    status_<code>    unexpected HTTP status
"""

import logging
from typing import Optional

import httpx

from core.config.settings import RegistryTarget
from core.contracts import Category, EntityKey, ProbeOutcome
from metrics.sink import REGISTRY_UP
from probes.classifier import HTTP_STATUS_CLASSIFIER, REGISTRY_CLASSIFIER
from probes.core import CONTROL_FLOW, Probe, ProbeContext

logger = logging.getLogger(__name__)

HEALTHY_STATUSES = (200, 401)


def normalize_registry_url(url: str, insecure: bool = False) -> str:
    """
    Add a scheme if missing (http when insecure, else https) and make
    sure the path ends in /v2/.

    >>> normalize_registry_url("registry.local:5000", insecure=True)
    'http://registry.local:5000/v2/'
    """
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = ("http://" if insecure else "https://") + url
    if not url.endswith("/"):
        url += "/"
    if not url.endswith("/v2/"):
        url += "v2/"
    return url


def registry_entity(target: RegistryTarget) -> EntityKey:
    return EntityKey.of(REGISTRY_UP, instance=target.name, url=target.url)


class RegistryProbe(Probe):
    """GET <url>/v2/ with a fresh client per invocation."""

    name = "registry"
    metric = REGISTRY_UP
    timeout_seconds = 10.0
    classifier = REGISTRY_CLASSIFIER

    def __init__(
        self,
        target: RegistryTarget,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(registry_entity(target), timeout_seconds)
        self.target = target
        self.url = normalize_registry_url(target.url, target.insecure)
        self._transport = transport

    def _auth(self) -> Optional[httpx.BasicAuth]:
        if self.target.username and self.target.password:
            return httpx.BasicAuth(self.target.username, self.target.password)
        return None

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        async with httpx.AsyncClient(
            verify=not self.target.insecure,
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                request = client.build_request("GET", self.url)
            except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as e:
                logger.warning(
                    f"Invalid URL for registry {self.target.name} ({self.target.url}): {e} "
                    f"[reason: {Category.REQUEST_FAILED.value}]"
                )
                return ProbeOutcome.failed(Category.REQUEST_FAILED, "request_failed", str(e))

            try:
                response = await ctx.call(client.send(request, auth=self._auth()))
            except CONTROL_FLOW:
                raise
            except httpx.UnsupportedProtocol as e:
                logger.warning(
                    f"Invalid URL for registry {self.target.name} ({self.target.url}): {e} "
                    f"[reason: {Category.REQUEST_FAILED.value}]"
                )
                return ProbeOutcome.failed(Category.REQUEST_FAILED, "request_failed", str(e))
            except Exception as e:
                return self.failure(e, "unreachable", f"GET {self.url}")

        status = response.status_code
        if status in HEALTHY_STATUSES:
            logger.info(f"Registry {self.target.name} ({self.target.url}) is healthy [{status}]")
            return ProbeOutcome.ok(f"status {status}", status_code=status)

        category = HTTP_STATUS_CLASSIFIER.classify(status)
        logger.warning(
            f"Registry {self.target.name} ({self.target.url}) returned unexpected status "
            f"{status} [reason: {category.value}]"
        )
        return ProbeOutcome.failed(
            category, f"status_{status}", f"unexpected status {status}", status_code=status
        )


__all__ = ["RegistryProbe", "normalize_registry_url", "registry_entity"]
