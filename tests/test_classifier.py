# ============================================================================
# CLASSIFIER TESTS
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Tests - Error to category mapping
# PURPOSE: Verify the family rule tables and the HTTP status table
# CREATED: 07 OCT 2026
# ============================================================================
"""
Classifier Tests

Covers:
1. None -> healthy for every classifier
2. Database auth / capacity / missing database / network errors
3. Platform API status-code rules
4. DNS sub-categories and the DNS default
5. Registry certificate and protocol errors
6. Object store auth and signature errors
7. HTTP status table (exact codes and ranges)
8. Totality: a broken rule never raises

Run with:
    pytest tests/test_classifier.py -v
"""

import asyncio
import socket

import httpx
import pytest

from core.contracts import Category
from infrastructure.cluster import ClusterAPIError
from probes.classifier import (
    DATABASE_CLASSIFIER,
    DNS_CLASSIFIER,
    HTTP_STATUS_CLASSIFIER,
    OBJECT_STORE_CLASSIFIER,
    PLATFORM_API_CLASSIFIER,
    REGISTRY_CLASSIFIER,
    UNKNOWN_CLASSIFIER,
    ErrorClassifier,
    Rule,
    contains,
)


ALL_ERROR_CLASSIFIERS = [
    DATABASE_CLASSIFIER,
    PLATFORM_API_CLASSIFIER,
    DNS_CLASSIFIER,
    REGISTRY_CLASSIFIER,
    OBJECT_STORE_CLASSIFIER,
    UNKNOWN_CLASSIFIER,
]


# ============================================================================
# GENERAL PROPERTIES
# ============================================================================

class TestClassifierProperties:

    @pytest.mark.parametrize("classifier", ALL_ERROR_CLASSIFIERS, ids=lambda c: c.name)
    def test_none_is_healthy(self, classifier):
        assert classifier.classify(None) == Category.HEALTHY

    def test_http_none_is_healthy(self):
        assert HTTP_STATUS_CLASSIFIER.classify(None) == Category.HEALTHY

    @pytest.mark.parametrize("classifier", ALL_ERROR_CLASSIFIERS, ids=lambda c: c.name)
    def test_always_returns_category(self, classifier):
        errors = [
            Exception(""),
            ValueError("something odd"),
            RuntimeError("\x00\xff"),
            KeyError("missing"),
        ]
        for error in errors:
            assert isinstance(classifier.classify(error), Category)

    def test_deterministic(self):
        error = Exception('password authentication failed for user "app"')
        results = {DATABASE_CLASSIFIER.classify(error) for _ in range(20)}
        assert results == {Category.AUTH_FAILED}

    def test_broken_rule_maps_to_unknown(self):
        def explode(error, message):
            raise RuntimeError("rule bug")

        classifier = ErrorClassifier("broken", [Rule(explode, Category.TIMEOUT)])
        assert classifier.classify(Exception("anything")) == Category.UNKNOWN

    def test_first_matching_rule_wins(self):
        classifier = ErrorClassifier("ordered", [
            Rule(contains("refused"), Category.CONNECTION_REFUSED),
            Rule(contains("connection"), Category.CONNECTION_ERROR),
        ])
        assert classifier.classify(Exception("connection refused")) == Category.CONNECTION_REFUSED
        assert classifier.classify(Exception("connection dropped")) == Category.CONNECTION_ERROR

    def test_unmatched_uses_default(self):
        assert UNKNOWN_CLASSIFIER.classify(ValueError("weird")) == Category.UNKNOWN

    def test_exception_chain_is_searched(self):
        wrapper = Exception("connection attempt failed")
        wrapper.__cause__ = Exception('password authentication failed for user "app"')
        assert DATABASE_CLASSIFIER.classify(wrapper) == Category.AUTH_FAILED


# ============================================================================
# DATABASE
# ============================================================================

class TestDatabaseClassifier:

    @pytest.mark.parametrize("message,expected", [
        ('password authentication failed for user "app"', Category.AUTH_FAILED),
        ('no pg_hba.conf entry for host "10.0.0.5"', Category.AUTH_FAILED),
        ('role "ghost" does not exist', Category.AUTH_FAILED),
        ("sorry, too many clients already", Category.TOO_MANY_CONNECTIONS),
        ("remaining connection slots are reserved", Category.TOO_MANY_CONNECTIONS),
        ('database "orders" does not exist', Category.DATABASE_NOT_FOUND),
        ("could not translate host name \"db\" to address", Category.DNS_RESOLUTION_FAILED),
        ("connection refused", Category.CONNECTION_REFUSED),
        ("connection timeout expired", Category.TIMEOUT),
        ("server closed the connection unexpectedly", Category.CONNECTION_ERROR),
        ("SSL error: certificate verify failed", Category.TLS_ERROR),
    ])
    def test_messages(self, message, expected):
        assert DATABASE_CLASSIFIER.classify(Exception(message)) == expected

    def test_exception_types(self):
        assert DATABASE_CLASSIFIER.classify(ConnectionRefusedError()) == Category.CONNECTION_REFUSED
        assert DATABASE_CLASSIFIER.classify(ConnectionResetError()) == Category.CONNECTION_RESET
        assert DATABASE_CLASSIFIER.classify(asyncio.TimeoutError()) == Category.TIMEOUT
        assert DATABASE_CLASSIFIER.classify(
            socket.gaierror(-2, "Name or service not known")
        ) == Category.DNS_RESOLUTION_FAILED

    def test_no_route_to_host(self):
        error = OSError(113, "No route to host")
        assert DATABASE_CLASSIFIER.classify(error) == Category.NETWORK_UNREACHABLE


# ============================================================================
# PLATFORM API
# ============================================================================

class TestPlatformAPIClassifier:

    @pytest.mark.parametrize("status,reason,expected", [
        (401, "Unauthorized", Category.AUTH_FAILED),
        (403, "Forbidden", Category.FORBIDDEN),
        (404, "NotFound", Category.RESOURCE_NOT_FOUND),
        (503, "ServiceUnavailable", Category.API_UNAVAILABLE),
    ])
    def test_status_codes(self, status, reason, expected):
        error = ClusterAPIError(status, reason, "request rejected")
        assert PLATFORM_API_CLASSIFIER.classify(error) == expected

    def test_transport_errors(self):
        assert PLATFORM_API_CLASSIFIER.classify(
            httpx.ConnectTimeout("timed out")
        ) == Category.TIMEOUT
        assert PLATFORM_API_CLASSIFIER.classify(
            httpx.ConnectError("[Errno 111] Connection refused")
        ) == Category.CONNECTION_REFUSED
        assert PLATFORM_API_CLASSIFIER.classify(
            httpx.ReadError("unexpected read failure")
        ) == Category.CONNECTION_ERROR


# ============================================================================
# DNS
# ============================================================================

class TestDNSClassifier:

    def test_host_not_found(self):
        error = socket.gaierror(-2, "Name or service not known")
        assert DNS_CLASSIFIER.classify(error) == Category.DNS_HOST_NOT_FOUND

    def test_temporary_failure(self):
        error = socket.gaierror(-3, "Temporary failure in name resolution")
        assert DNS_CLASSIFIER.classify(error) == Category.DNS_TEMPORARY_FAILURE

    def test_server_error(self):
        assert DNS_CLASSIFIER.classify(Exception("server misbehaving")) == Category.DNS_SERVER_ERROR

    def test_timeout(self):
        assert DNS_CLASSIFIER.classify(asyncio.TimeoutError()) == Category.DNS_TIMEOUT

    def test_default(self):
        assert DNS_CLASSIFIER.classify(Exception("resolver exploded")) == Category.DNS_RESOLUTION_FAILED


# ============================================================================
# REGISTRY
# ============================================================================

class TestRegistryClassifier:

    def test_unknown_authority(self):
        error = httpx.ConnectError(
            "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: "
            "unable to get local issuer certificate"
        )
        assert REGISTRY_CLASSIFIER.classify(error) == Category.CERTIFICATE_UNKNOWN_AUTHORITY

    def test_expired(self):
        error = httpx.ConnectError("certificate verify failed: certificate has expired")
        assert REGISTRY_CLASSIFIER.classify(error) == Category.CERTIFICATE_EXPIRED

    def test_connection_closed(self):
        error = httpx.RemoteProtocolError("Server disconnected without sending a response.")
        assert REGISTRY_CLASSIFIER.classify(error) == Category.CONNECTION_CLOSED

    def test_refused(self):
        error = httpx.ConnectError("[Errno 111] Connection refused")
        assert REGISTRY_CLASSIFIER.classify(error) == Category.CONNECTION_REFUSED

    def test_timeout(self):
        assert REGISTRY_CLASSIFIER.classify(httpx.ReadTimeout("read")) == Category.TIMEOUT


# ============================================================================
# OBJECT STORE
# ============================================================================

class TestObjectStoreClassifier:

    @pytest.mark.parametrize("message,expected", [
        ("S3 operation failed; code: AccessDenied", Category.AUTH_FAILED),
        ("S3 operation failed; code: InvalidAccessKeyId", Category.AUTH_FAILED),
        ("S3 operation failed; code: SignatureDoesNotMatch", Category.SIGNATURE_MISMATCH),
        ("S3 operation failed; code: NoSuchBucket", Category.BUCKET_ERROR),
        ("Max retries exceeded: Connection refused", Category.CONNECTION_REFUSED),
        ("Read timed out", Category.TIMEOUT),
    ])
    def test_messages(self, message, expected):
        assert OBJECT_STORE_CLASSIFIER.classify(Exception(message)) == expected


# ============================================================================
# HTTP STATUS
# ============================================================================

class TestHTTPStatusClassifier:

    @pytest.mark.parametrize("status,expected", [
        (200, Category.HEALTHY),
        (400, Category.BAD_REQUEST),
        (401, Category.AUTH_FAILED),
        (403, Category.FORBIDDEN),
        (404, Category.RESOURCE_NOT_FOUND),
        (405, Category.METHOD_NOT_ALLOWED),
        (408, Category.REQUEST_TIMEOUT),
        (429, Category.RATE_LIMITED),
        (500, Category.INTERNAL_SERVER_ERROR),
        (501, Category.NOT_IMPLEMENTED),
        (502, Category.BAD_GATEWAY),
        (503, Category.SERVICE_UNAVAILABLE),
        (504, Category.GATEWAY_TIMEOUT),
        (505, Category.HTTP_VERSION_NOT_SUPPORTED),
    ])
    def test_exact_codes(self, status, expected):
        assert HTTP_STATUS_CLASSIFIER.classify(status) == expected

    @pytest.mark.parametrize("status,expected", [
        (301, Category.REDIRECT),
        (307, Category.REDIRECT),
        (418, Category.CLIENT_ERROR),
        (451, Category.CLIENT_ERROR),
        (599, Category.UPSTREAM_UNAVAILABLE),
        (204, Category.UNEXPECTED_STATUS),
        (700, Category.UNEXPECTED_STATUS),
    ])
    def test_ranges(self, status, expected):
        assert HTTP_STATUS_CLASSIFIER.classify(status) == expected

    def test_non_numeric(self):
        assert HTTP_STATUS_CLASSIFIER.classify("not-a-status") == Category.UNKNOWN
