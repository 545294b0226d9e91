# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Foundation - Category taxonomy and probe result contracts
# PURPOSE: Define the data that crosses probe / collector / metric boundaries
# CREATED: 06 OCT 2026
# EXPORTS: Category, EntityKey, ProbeOutcome, ProbeResult
# ============================================================================
"""
Base contracts for the health console.

These define the values that cross boundaries:
- Probe -> Collector (ProbeResult)
- Collector -> Metric sink (EntityKey labels + Category label value)

The Category string values are a user-facing contract. Alerting rules
key off these exact strings, so existing values must never be renamed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ============================================================================
# CATEGORY TAXONOMY
# ============================================================================

class Category(str, Enum):
    """
    Stable classification of a probe outcome, exported as `error_reason`.

    Grouped by taxonomy bucket:
        Healthy, AuthFailure, Timeout, ConnectionRefused, NetworkUnreachable,
        ConnectionReset, DNSFailure, TLSError, ResourceNotFound,
        QuotaOrCapacityExceeded, UpstreamUnavailable, Cancelled, Unknown
    """
    # Healthy
    HEALTHY = "healthy"

    # AuthFailure
    AUTH_FAILED = "auth_failed"
    FORBIDDEN = "forbidden"
    SIGNATURE_MISMATCH = "signature_mismatch"

    # Timeout
    TIMEOUT = "timeout"
    REQUEST_TIMEOUT = "request_timeout"
    PVC_BIND_TIMEOUT = "pvc_bind_timeout"

    # Connection level
    CONNECTION_REFUSED = "connection_refused"
    NETWORK_UNREACHABLE = "network_unreachable"
    CONNECTION_RESET = "connection_reset"
    CONNECTION_CLOSED = "connection_closed"
    CONNECTION_ERROR = "connection_error"

    # DNSFailure
    DNS_RESOLUTION_FAILED = "dns_resolution_failed"
    DNS_HOST_NOT_FOUND = "dns_host_not_found"
    DNS_SERVER_ERROR = "dns_server_error"
    DNS_TIMEOUT = "dns_timeout"
    DNS_TEMPORARY_FAILURE = "dns_temporary_failure"

    # TLSError
    TLS_ERROR = "tls_error"
    CERTIFICATE_UNKNOWN_AUTHORITY = "certificate_unknown_authority"
    CERTIFICATE_EXPIRED = "certificate_expired"
    SSL_PROTOCOL_ERROR = "ssl_protocol_error"

    # ResourceNotFound
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE_NOT_FOUND = "database_not_found"
    BUCKET_ERROR = "bucket_error"
    NO_PODS_FOUND = "no_pods_found"
    NO_READY_PODS = "no_ready_pods"
    NO_RUNNING_PODS = "no_running_pods"
    NO_STORAGE_CLASSES = "no_storage_classes"

    # QuotaOrCapacityExceeded
    TOO_MANY_CONNECTIONS = "too_many_connections"
    RATE_LIMITED = "rate_limited"
    PVC_LOST = "pvc_lost"
    PVC_UNEXPECTED_STATE = "pvc_unexpected_state"

    # UpstreamUnavailable (HTTP status family)
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    API_UNAVAILABLE = "api_unavailable"
    INTERNAL_SERVER_ERROR = "internal_server_error"
    NOT_IMPLEMENTED = "not_implemented"
    BAD_GATEWAY = "bad_gateway"
    SERVICE_UNAVAILABLE = "service_unavailable"
    GATEWAY_TIMEOUT = "gateway_timeout"
    HTTP_VERSION_NOT_SUPPORTED = "http_version_not_supported"

    # Client-side HTTP outcomes
    REDIRECT = "redirect"
    BAD_REQUEST = "bad_request"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CLIENT_ERROR = "client_error"
    UNEXPECTED_STATUS = "unexpected_status"

    # Probe setup
    REQUEST_FAILED = "request_failed"
    CLIENT_CREATION_FAILED = "client_creation_failed"

    # Cancelled / Unknown
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def is_healthy(self) -> bool:
        return self is Category.HEALTHY


# ============================================================================
# ENTITY KEY
# ============================================================================

LabelPairs = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class EntityKey:
    """
    Identity of one monitored instance within a backend family.

    `metric` is the gauge the entity reports into; `labels` are the
    identifying label pairs (everything except the category label).
    Hashable, so it can key the label registry directly.
    """
    metric: str
    labels: LabelPairs = ()

    @classmethod
    def of(cls, metric: str, **labels: Any) -> "EntityKey":
        """Build a key from keyword labels, preserving argument order."""
        return cls(metric=metric, labels=tuple((k, str(v)) for k, v in labels.items()))

    @property
    def label_dict(self) -> Dict[str, str]:
        return dict(self.labels)

    @property
    def name(self) -> str:
        """Short human-readable name for logs."""
        if not self.labels:
            return self.metric
        return ",".join(value for _, value in self.labels)

    def with_category(self, category_label: str, category: "Category") -> Dict[str, str]:
        """Full label set for the series carrying `category`."""
        labels = self.label_dict
        labels[category_label] = Category(category).value
        return labels


# ============================================================================
# PROBE OUTCOME / RESULT
# ============================================================================

@dataclass(frozen=True)
class ProbeOutcome:
    """What a probe decided, before timing is attached."""
    healthy: bool
    category: Category
    error_type: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = None, **details) -> "ProbeOutcome":
        """Create healthy outcome."""
        return cls(healthy=True, category=Category.HEALTHY, message=message, details=details)

    @classmethod
    def failed(
        cls,
        category: Category,
        error_type: str,
        message: str = None,
        **details,
    ) -> "ProbeOutcome":
        """Create unhealthy outcome."""
        return cls(
            healthy=False,
            category=category,
            error_type=error_type,
            message=message,
            details=details,
        )


@dataclass(frozen=True)
class ProbeResult:
    """
    Result of one probe invocation.

    Immutable once produced and consumed exactly once by the collector's
    report step. No history is kept: the next result for the same entity
    supersedes this one in the metric sink.
    """
    entity: EntityKey
    check: str
    healthy: bool
    category: Category
    latency_seconds: float
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error_type: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_outcome(
        cls,
        entity: EntityKey,
        check: str,
        outcome: ProbeOutcome,
        latency_seconds: float,
        observed_at: Optional[datetime] = None,
    ) -> "ProbeResult":
        return cls(
            entity=entity,
            check=check,
            healthy=outcome.healthy,
            category=outcome.category,
            latency_seconds=latency_seconds,
            observed_at=observed_at or datetime.now(timezone.utc),
            error_type=outcome.error_type,
            message=outcome.message,
            details=dict(outcome.details),
        )

    @property
    def gauge_value(self) -> float:
        return 1.0 if self.healthy else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "entity": self.entity.label_dict,
            "check": self.check,
            "healthy": self.healthy,
            "category": self.category.value,
            "latency_ms": round(self.latency_seconds * 1000, 2),
            "observed_at": self.observed_at.isoformat(),
        }
        if self.error_type:
            result["error_type"] = self.error_type
        if self.message:
            result["message"] = self.message
        return result


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "Category",
    "LabelPairs",
    "EntityKey",
    "ProbeOutcome",
    "ProbeResult",
]
