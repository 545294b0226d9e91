# ============================================================================
# CLUSTER API CLIENT
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Infrastructure - Kubernetes REST access over httpx
# PURPOSE: Discovery and storage provisioning calls for the cluster probes
# CREATED: 06 OCT 2026
# ============================================================================
"""
Cluster API Client

Thin async client for the handful of Kubernetes API calls the probes need:

    GET    /version                                          API server probe
    GET    /livez                                            etcd fallback
    GET    /api/v1/namespaces/{ns}/pods?labelSelector=...    CoreDNS / etcd pods
    GET    /apis/storage.k8s.io/v1/storageclasses            discovery
    GET    /apis/storage.k8s.io/v1/storageclasses/{name}     binding mode
    POST   /api/v1/namespaces/{ns}/persistentvolumeclaims    provisioning
    GET    /api/v1/namespaces/{ns}/persistentvolumeclaims/{name}
    DELETE /api/v1/namespaces/{ns}/persistentvolumeclaims/{name}

Non-2xx responses raise ClusterAPIError built from the Status body.
Transport errors (httpx.TransportError) propagate unchanged so the
probes can classify them.

In-cluster configuration reads the service account mounted at
/var/run/secrets/kubernetes.io/serviceaccount. The token is re-read on
every request because the kubelet rotates projected tokens.
"""

import logging
import os
import ssl
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ClusterConfigError(Exception):
    """In-cluster configuration is missing or unreadable."""
    pass


class ClusterAPIError(Exception):
    """Non-success response from the cluster API."""

    def __init__(self, status_code: int, reason: str = "", message: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.message = message
        super().__init__(str(self))

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ClusterAPIError":
        reason = response.reason_phrase or ""
        message = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            reason = body.get("reason") or reason
            message = body.get("message") or ""
        if not message:
            message = response.text[:200]
        return cls(response.status_code, reason, message)

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

    def __str__(self) -> str:
        text = f"cluster API error {self.status_code}"
        if self.reason:
            text += f" {self.reason}"
        if self.message:
            text += f": {self.message}"
        return text


# ============================================================================
# AUTH
# ============================================================================

class ServiceAccountTokenAuth(httpx.Auth):
    """Bearer auth that re-reads the token on each request."""

    def __init__(self, token_provider: Callable[[], Optional[str]]):
        self.token_provider = token_provider

    def auth_flow(self, request: httpx.Request):
        token = self.token_provider()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


def _file_token_provider(path: str) -> Callable[[], Optional[str]]:
    def provider() -> Optional[str]:
        try:
            with open(path, "r") as f:
                return f.read().strip()
        except OSError as e:
            logger.warning(f"Could not read service account token {path}: {e}")
            return None

    return provider


# ============================================================================
# PROVISIONING INTERFACE
# ============================================================================

class ProvisioningAPI(ABC):
    """Storage calls used by the provisioning probe."""

    @abstractmethod
    async def get_storage_class(self, name: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def create_claim(self, namespace: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_claim(self, namespace: str, name: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def delete_claim(self, namespace: str, name: str) -> None:
        pass


# ============================================================================
# CLIENT
# ============================================================================

class ClusterClient(ProvisioningAPI):
    """
    Async Kubernetes API client.

    One instance is shared by all cluster probes of a collector;
    httpx.AsyncClient is safe for concurrent requests.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        verify: Any = True,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        auth = ServiceAccountTokenAuth(token_provider) if token_provider else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            verify=verify,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def in_cluster(
        cls,
        timeout: float = 10.0,
        account_dir: str = SERVICE_ACCOUNT_DIR,
    ) -> "ClusterClient":
        """
        Build a client from the pod's service account.

        Raises:
            ClusterConfigError: Not running in a cluster
        """
        host = os.environ.get("KUBERNETES_SERVICE_HOST")
        port = os.environ.get("KUBERNETES_SERVICE_PORT")
        if not host or not port:
            raise ClusterConfigError(
                "KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT must be set"
            )

        token_path = os.path.join(account_dir, "token")
        ca_path = os.path.join(account_dir, "ca.crt")
        if not os.path.isfile(token_path):
            raise ClusterConfigError(f"Service account token not found: {token_path}")
        if not os.path.isfile(ca_path):
            raise ClusterConfigError(f"Cluster CA not found: {ca_path}")

        try:
            verify = ssl.create_default_context(cafile=ca_path)
        except (OSError, ssl.SSLError) as e:
            raise ClusterConfigError(f"Cannot load cluster CA {ca_path}: {e}") from e

        if ":" in host:
            host = f"[{host}]"
        base_url = f"https://{host}:{port}"
        logger.info(f"Using in-cluster API server at {base_url}")
        return cls(
            base_url,
            token_provider=_file_token_provider(token_path),
            verify=verify,
            timeout=timeout,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        response = await self._client.request(method, path, params=params, json=json_body)
        if response.status_code >= 400:
            raise ClusterAPIError.from_response(response)
        return response

    async def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        return response.json()

    # ------------------------------------------------------------------
    # DISCOVERY
    # ------------------------------------------------------------------

    async def server_version(self) -> Dict[str, Any]:
        """GET /version"""
        return await self._json("GET", "/version")

    async def livez(self) -> str:
        """GET /livez"""
        response = await self._request("GET", "/livez")
        return response.text

    async def list_pods(self, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
        body = await self._json(
            "GET",
            f"/api/v1/namespaces/{namespace}/pods",
            params={"labelSelector": label_selector},
        )
        return body.get("items") or []

    async def list_storage_classes(self) -> List[Dict[str, Any]]:
        body = await self._json("GET", "/apis/storage.k8s.io/v1/storageclasses")
        return body.get("items") or []

    # ------------------------------------------------------------------
    # PROVISIONING
    # ------------------------------------------------------------------

    async def get_storage_class(self, name: str) -> Dict[str, Any]:
        return await self._json("GET", f"/apis/storage.k8s.io/v1/storageclasses/{name}")

    async def create_claim(self, namespace: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        return await self._json(
            "POST",
            f"/api/v1/namespaces/{namespace}/persistentvolumeclaims",
            json_body=manifest,
        )

    async def get_claim(self, namespace: str, name: str) -> Dict[str, Any]:
        return await self._json(
            "GET", f"/api/v1/namespaces/{namespace}/persistentvolumeclaims/{name}"
        )

    async def delete_claim(self, namespace: str, name: str) -> None:
        await self._request(
            "DELETE", f"/api/v1/namespaces/{namespace}/persistentvolumeclaims/{name}"
        )

    async def aclose(self) -> None:
        await self._client.aclose()


# ============================================================================
# POD HELPERS
# ============================================================================

def pod_phase(pod: Dict[str, Any]) -> str:
    return (pod.get("status") or {}).get("phase", "")


def pod_is_ready(pod: Dict[str, Any]) -> bool:
    """Running with condition Ready=True."""
    if pod_phase(pod) != "Running":
        return False
    for condition in (pod.get("status") or {}).get("conditions") or []:
        if condition.get("type") == "Ready" and condition.get("status") == "True":
            return True
    return False


def object_name(obj: Dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ClusterConfigError",
    "ClusterAPIError",
    "ServiceAccountTokenAuth",
    "ProvisioningAPI",
    "ClusterClient",
    "pod_phase",
    "pod_is_ready",
    "object_name",
]
