"""Prometheus metrics definitions for APIAuth.

Metrics use the ``apiauth_`` prefix. The scheme label tracks how far the
migration to method-bound signatures has progressed: once no request
verifies with ``scheme="legacy"``, legacy acceptance can be turned off.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Verification counter  (labels: outcome, scheme)
# ---------------------------------------------------------------------------
verifications_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once. While metrics are disabled the module-level
    references stay ``None`` and nothing is registered.
    """
    global _initialized, verifications_total

    if _initialized:
        return

    verifications_total = Counter(
        "apiauth_verifications_total",
        "APIAuth request verifications by outcome and signature scheme",
        ["outcome", "scheme"],
    )

    _initialized = True


def record_verification(outcome: str, scheme: str = "none") -> None:
    """Count one verification; a no-op until init_metrics() has run."""
    if verifications_total is not None:
        verifications_total.labels(outcome=outcome, scheme=scheme).inc()
