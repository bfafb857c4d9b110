"""Liveness and readiness probes.

/health answers "is the process up" and reports which permission matrix
it booted with. /ready answers "can it authorize requests": 503 while
the loaded matrix leaves any global role without an entry, because every
request carrying that role would be denied.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import REGISTRY

from marketplace.api.dependencies import authorizer
from marketplace.authz.matrix import DEFAULT_MATRIX
from marketplace.models.identity import GlobalRole

router = APIRouter(tags=["health"])


def _sum_counter(metric_name: str, label_filter: dict | None = None) -> float:
    """Sum a counter's samples across every label combination matching the filter."""
    total = 0.0
    for metric in REGISTRY.collect():
        for sample in metric.samples:
            if sample.name != metric_name:
                continue
            if label_filter and not all(
                sample.labels.get(k) == v for k, v in label_filter.items()
            ):
                continue
            total += sample.value
    return total


def _missing_roles() -> list[str]:
    loaded = authorizer.matrix.roles
    return sorted(r.value for r in GlobalRole if r not in loaded)


@router.get("/health")
async def health() -> dict:
    """Always 200 while the process can answer; ``status`` carries the detail."""
    missing = _missing_roles()
    decisions = _sum_counter("authz_decisions_total")
    allowed = _sum_counter("authz_decisions_total", {"outcome": "allowed"})
    return {
        "status": "degraded" if missing else "ok",
        "checks": {
            "permission_matrix": (
                "built_in" if authorizer.matrix is DEFAULT_MATRIX else "file"
            ),
            "roles_missing": missing,
        },
        "authz": {
            "decisions": int(decisions),
            "denied": int(decisions - allowed),
        },
    }


@router.get("/ready")
async def ready() -> Response:
    if _missing_roles():
        return Response(status_code=503)
    return Response(status_code=200)
