"""Prometheus metrics for the machine plane.

Counters live on the default global registry so they are exported next to
prometheus_client's process collectors by whatever process embeds us.

Usage::

    from machine_plane.observability.metrics import MACHINE_CREATE_ATTEMPTS_TOTAL

    MACHINE_CREATE_ATTEMPTS_TOTAL.labels(outcome="success").inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    generate_latest,
)

# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------

MACHINE_CREATE_ATTEMPTS_TOTAL = Counter(
    "machine_plane_create_attempts_total",
    "Machine creation calls by outcome (success, http_error, transport_error).",
    labelnames=["outcome"],
    registry=REGISTRY,
)

REGION_FALLBACKS_TOTAL = Counter(
    "machine_plane_region_fallbacks_total",
    "Creation retries redirected to a fallback region.",
    labelnames=["region"],
    registry=REGISTRY,
)

REGION_CATALOG_LOADS_TOTAL = Counter(
    "machine_plane_region_catalog_loads_total",
    "Region discovery attempts by outcome (loaded, failed).",
    labelnames=["outcome"],
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

MACHINE_DESTROY_TOTAL = Counter(
    "machine_plane_destroy_total",
    "Destroy operations by outcome (success, store_error, remote_error).",
    labelnames=["outcome"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
