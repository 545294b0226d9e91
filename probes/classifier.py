# ============================================================================
# ERROR CLASSIFIER
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - Error to category mapping
# PURPOSE: Deterministic, total classification of probe failures
# CREATED: 06 OCT 2026
# ============================================================================
"""
Error Classifier

Maps a raw failure (exception or HTTP status code) onto the fixed
Category taxonomy. Each backend family has its own ordered rule table;
the first matching rule wins, so specific rules (authentication, a
particular certificate problem) sit above generic ones ("connection").

Properties:
- Pure: same input, same category
- Total: never raises; internal failures map to UNKNOWN
- None maps to HEALTHY

Rule predicates:
    contains("a", "b")   case-insensitive substring of str(error)
    matches(r"regex")    case-insensitive regex search on str(error)
    is_instance(T, ...)  isinstance check
    has_status(401)      error.status_code (e.g. cluster API errors)
"""

import asyncio
import logging
import re
import socket
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

import httpx

from core.contracts import Category

logger = logging.getLogger(__name__)

Predicate = Callable[[BaseException, str], bool]


# ============================================================================
# RULES
# ============================================================================

@dataclass(frozen=True)
class Rule:
    """One row of a classification table."""
    predicate: Predicate
    category: Category
    description: str = ""

    def matches(self, error: BaseException, message: str) -> bool:
        return self.predicate(error, message)


def contains(*substrings: str) -> Predicate:
    needles = tuple(s.lower() for s in substrings)

    def predicate(error: BaseException, message: str) -> bool:
        return any(needle in message for needle in needles)

    return predicate


def matches(pattern: str) -> Predicate:
    compiled = re.compile(pattern, re.IGNORECASE)

    def predicate(error: BaseException, message: str) -> bool:
        return compiled.search(message) is not None

    return predicate


def is_instance(*types: type) -> Predicate:
    def predicate(error: BaseException, message: str) -> bool:
        return isinstance(error, types)

    return predicate


def has_status(*codes: int) -> Predicate:
    def predicate(error: BaseException, message: str) -> bool:
        return getattr(error, "status_code", None) in codes

    return predicate


def any_of(*predicates: Predicate) -> Predicate:
    def predicate(error: BaseException, message: str) -> bool:
        return any(p(error, message) for p in predicates)

    return predicate


# ============================================================================
# CLASSIFIERS
# ============================================================================

class Classifier(ABC):
    """Common interface for all classifiers."""

    @abstractmethod
    def classify(self, raw: Any) -> Category:
        pass


class ErrorClassifier(Classifier):
    """Ordered rule table over exceptions."""

    def __init__(self, name: str, rules: Sequence[Rule], default: Category = Category.UNKNOWN):
        self.name = name
        self.rules = tuple(rules)
        self.default = default

    def classify(self, raw: Optional[BaseException]) -> Category:
        if raw is None:
            return Category.HEALTHY
        try:
            message = _describe(raw).lower()
            for rule in self.rules:
                if rule.matches(raw, message):
                    return rule.category
            return self.default
        except Exception as e:
            logger.error(f"{self.name} classifier failed on {type(raw).__name__}: {e}")
            return Category.UNKNOWN

    def __repr__(self) -> str:
        return f"<ErrorClassifier {self.name} rules={len(self.rules)}>"


def _describe(error: BaseException) -> str:
    """
    Text used for substring rules.

    Includes the exception chain, since httpx and psycopg wrap the
    socket or SSL error that carries the useful wording.
    """
    parts = [type(error).__name__, str(error)]
    seen = {id(error)}
    cause = error.__cause__ or error.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        parts.append(str(cause))
        cause = cause.__cause__ or cause.__context__
    return " ".join(parts)


class HTTPStatusClassifier(Classifier):
    """Maps HTTP status codes to categories."""

    EXACT: Dict[int, Category] = {
        200: Category.HEALTHY,
        400: Category.BAD_REQUEST,
        401: Category.AUTH_FAILED,
        403: Category.FORBIDDEN,
        404: Category.RESOURCE_NOT_FOUND,
        405: Category.METHOD_NOT_ALLOWED,
        408: Category.REQUEST_TIMEOUT,
        429: Category.RATE_LIMITED,
        500: Category.INTERNAL_SERVER_ERROR,
        501: Category.NOT_IMPLEMENTED,
        502: Category.BAD_GATEWAY,
        503: Category.SERVICE_UNAVAILABLE,
        504: Category.GATEWAY_TIMEOUT,
        505: Category.HTTP_VERSION_NOT_SUPPORTED,
    }

    def classify(self, raw: Optional[int]) -> Category:
        if raw is None:
            return Category.HEALTHY
        try:
            status = int(raw)
        except (TypeError, ValueError):
            return Category.UNKNOWN
        if status in self.EXACT:
            return self.EXACT[status]
        if 300 <= status < 400:
            return Category.REDIRECT
        if 400 <= status < 500:
            return Category.CLIENT_ERROR
        if 500 <= status < 600:
            return Category.UPSTREAM_UNAVAILABLE
        return Category.UNEXPECTED_STATUS


# ============================================================================
# SHARED RULES
# ============================================================================

_TIMEOUT_TYPES = is_instance(TimeoutError, asyncio.TimeoutError, socket.timeout, httpx.TimeoutException)

TIMEOUT = Rule(
    any_of(_TIMEOUT_TYPES, contains("timeout", "timed out", "deadline exceeded")),
    Category.TIMEOUT,
    "timeout",
)
REFUSED = Rule(
    any_of(is_instance(ConnectionRefusedError), contains("connection refused")),
    Category.CONNECTION_REFUSED,
    "refused",
)
UNREACHABLE = Rule(
    contains("no route to host", "network unreachable", "network is unreachable"),
    Category.NETWORK_UNREACHABLE,
    "unreachable",
)
RESET = Rule(
    any_of(is_instance(ConnectionResetError), contains("connection reset")),
    Category.CONNECTION_RESET,
    "reset",
)
DNS = Rule(
    any_of(
        is_instance(socket.gaierror),
        contains(
            "no such host",
            "could not resolve",
            "could not translate host name",
            "name or service not known",
            "nodename nor servname",
            "temporary failure in name resolution",
        ),
    ),
    Category.DNS_RESOLUTION_FAILED,
    "dns",
)
TLS = Rule(
    any_of(is_instance(ssl.SSLError), contains("certificate", "tls", "ssl", "x509")),
    Category.TLS_ERROR,
    "tls",
)
CONNECTION = Rule(
    any_of(is_instance(ConnectionError, httpx.TransportError), contains("connection")),
    Category.CONNECTION_ERROR,
    "connection",
)


# ============================================================================
# FAMILY TABLES
# ============================================================================

DATABASE_CLASSIFIER = ErrorClassifier("database", [
    Rule(
        contains(
            "password authentication failed",
            "authentication failed",
            "no pg_hba.conf entry",
            "access denied",
            "password is required",
        ),
        Category.AUTH_FAILED,
        "auth",
    ),
    Rule(matches(r'role "[^"]*" does not exist'), Category.AUTH_FAILED, "unknown role"),
    TIMEOUT,
    REFUSED,
    UNREACHABLE,
    RESET,
    DNS,
    Rule(
        contains("too many connections", "too many clients", "remaining connection slots"),
        Category.TOO_MANY_CONNECTIONS,
        "capacity",
    ),
    Rule(
        any_of(matches(r'database "[^"]*" does not exist'), contains("unknown database")),
        Category.DATABASE_NOT_FOUND,
        "database",
    ),
    TLS,
    CONNECTION,
])

PLATFORM_API_CLASSIFIER = ErrorClassifier("platform_api", [
    Rule(
        any_of(has_status(401), contains("unauthorized", "authentication")),
        Category.AUTH_FAILED,
        "auth",
    ),
    Rule(
        any_of(has_status(403), contains("forbidden", "authorization")),
        Category.FORBIDDEN,
        "forbidden",
    ),
    TIMEOUT,
    REFUSED,
    UNREACHABLE,
    RESET,
    DNS,
    Rule(
        any_of(is_instance(ssl.SSLError), contains("certificate", "tls", "x509")),
        Category.TLS_ERROR,
        "tls",
    ),
    Rule(any_of(has_status(404), contains("not found")), Category.RESOURCE_NOT_FOUND, "not found"),
    Rule(
        any_of(
            has_status(503),
            contains("server could not find", "the server is currently unable"),
        ),
        Category.API_UNAVAILABLE,
        "api",
    ),
    CONNECTION,
])

DNS_CLASSIFIER = ErrorClassifier("dns", [
    Rule(
        contains("no such host", "name or service not known", "nodename nor servname", "no address associated"),
        Category.DNS_HOST_NOT_FOUND,
        "nxdomain",
    ),
    Rule(contains("server misbehaving", "servfail"), Category.DNS_SERVER_ERROR, "server"),
    Rule(any_of(_TIMEOUT_TYPES, contains("timeout", "timed out")), Category.DNS_TIMEOUT, "timeout"),
    Rule(contains("temporary failure"), Category.DNS_TEMPORARY_FAILURE, "temporary"),
], default=Category.DNS_RESOLUTION_FAILED)

REGISTRY_CLASSIFIER = ErrorClassifier("registry", [
    Rule(
        contains(
            "certificate signed by unknown authority",
            "unable to get local issuer certificate",
            "self signed certificate",
            "self-signed certificate",
        ),
        Category.CERTIFICATE_UNKNOWN_AUTHORITY,
        "unknown ca",
    ),
    Rule(
        contains("certificate has expired", "certificate is not valid"),
        Category.CERTIFICATE_EXPIRED,
        "expired",
    ),
    Rule(contains("certificate", "tls", "x509"), Category.TLS_ERROR, "tls"),
    TIMEOUT,
    REFUSED,
    UNREACHABLE,
    RESET,
    DNS,
    Rule(any_of(is_instance(ssl.SSLError), contains("ssl")), Category.SSL_PROTOCOL_ERROR, "ssl"),
    Rule(
        any_of(
            is_instance(httpx.RemoteProtocolError),
            contains("eof", "server disconnected", "connection closed"),
        ),
        Category.CONNECTION_CLOSED,
        "closed",
    ),
    CONNECTION,
])

OBJECT_STORE_CLASSIFIER = ErrorClassifier("object_store", [
    Rule(
        contains("access denied", "accessdenied", "invalid access key", "invalidaccesskeyid"),
        Category.AUTH_FAILED,
        "auth",
    ),
    Rule(
        contains("signature does not match", "signaturedoesnotmatch"),
        Category.SIGNATURE_MISMATCH,
        "signature",
    ),
    TIMEOUT,
    REFUSED,
    UNREACHABLE,
    RESET,
    DNS,
    Rule(
        any_of(is_instance(ssl.SSLError), contains("certificate", "tls", "x509")),
        Category.TLS_ERROR,
        "tls",
    ),
    Rule(contains("bucket"), Category.BUCKET_ERROR, "bucket"),
    CONNECTION,
])

HTTP_STATUS_CLASSIFIER = HTTPStatusClassifier()

UNKNOWN_CLASSIFIER = ErrorClassifier("unknown", [])


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "Rule",
    "contains",
    "matches",
    "is_instance",
    "has_status",
    "any_of",
    "Classifier",
    "ErrorClassifier",
    "HTTPStatusClassifier",
    "DATABASE_CLASSIFIER",
    "PLATFORM_API_CLASSIFIER",
    "DNS_CLASSIFIER",
    "REGISTRY_CLASSIFIER",
    "OBJECT_STORE_CLASSIFIER",
    "HTTP_STATUS_CLASSIFIER",
    "UNKNOWN_CLASSIFIER",
]
