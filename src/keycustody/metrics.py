"""Prometheus metrics for keycustody."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Histogram, Info, generate_latest, CONTENT_TYPE_LATEST

from keycustody import __version__

# -----------------------------------------------------------------------------
# Application Info
# -----------------------------------------------------------------------------

APP_INFO = Info(
    "keycustody",
    "Key custody service information",
)
APP_INFO.info({
    "version": __version__,
})

# -----------------------------------------------------------------------------
# Vault Request Metrics
# -----------------------------------------------------------------------------

KMS_REQUESTS = Counter(
    "keycustody_kms_requests_total",
    "Total number of requests sent to the key vault",
    ["operation", "outcome"],
)

KMS_REQUEST_DURATION = Histogram(
    "keycustody_kms_request_duration_seconds",
    "Key vault request duration in seconds",
    ["operation"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# -----------------------------------------------------------------------------
# Key Operation Metrics
# -----------------------------------------------------------------------------

KEY_OPERATIONS = Counter(
    "keycustody_key_operations_total",
    "Total number of completed key operations",
    ["operation"],
)

VERIFICATIONS = Counter(
    "keycustody_verifications_total",
    "Signature verifications by path and result",
    ["path", "result"],
)

SECRET_PROBE_FALLBACKS = Counter(
    "keycustody_secret_probe_fallbacks_total",
    "Secret probes that found nothing and fell back to the key object",
    ["operation"],
)

# -----------------------------------------------------------------------------
# Error Metrics
# -----------------------------------------------------------------------------

ERRORS = Counter(
    "keycustody_errors_total",
    "Total number of errors",
    ["error_type", "operation"],
)


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------


def record_kms_request(operation: str, outcome: str, duration: float) -> None:
    """Record a completed key vault request."""
    KMS_REQUESTS.labels(operation=operation, outcome=outcome).inc()
    KMS_REQUEST_DURATION.labels(operation=operation).observe(duration)


def record_key_operation(operation: str) -> None:
    """Record a completed key operation."""
    KEY_OPERATIONS.labels(operation=operation).inc()


def record_verification(path: str, is_valid: bool) -> None:
    """Record a verification result for the local or remote path."""
    VERIFICATIONS.labels(path=path, result="valid" if is_valid else "invalid").inc()


def record_secret_probe_fallback(operation: str) -> None:
    """Record a secret probe that fell back to the key object."""
    SECRET_PROBE_FALLBACKS.labels(operation=operation).inc()


def record_error(error_type: str, operation: str) -> None:
    """Record an error."""
    ERRORS.labels(error_type=error_type, operation=operation).inc()


@contextmanager
def track_kms_request(operation: str) -> Generator[dict[str, str], None, None]:
    """
    Context manager to time a key vault request.

    The caller may set state["outcome"]; an exception marks the request
    as "error".
    """
    state = {"outcome": "success"}
    start = time.perf_counter()
    try:
        yield state
    except Exception:
        if state["outcome"] == "success":
            state["outcome"] = "error"
        raise
    finally:
        record_kms_request(operation, state["outcome"], time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
