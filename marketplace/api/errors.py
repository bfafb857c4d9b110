"""Translate authorization outcomes into HTTP errors.

This is the only place that maps a denial reason to a status code.
Every role or tenancy denial renders as the same bare 403, so a caller
cannot tell "wrong role" from "right role, wrong shop" by the response.
State conflicts carry the specific statuses so the client can refresh.
"""

from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException, status

from marketplace.authz.outcomes import Decision, Denied
from marketplace.core.metrics import STATUS_WRITE_CONFLICTS
from marketplace.models.resource import ResourceType

FORBIDDEN_DETAIL = "Forbidden"
NOT_FOUND_DETAIL = "Resource not found"

R = TypeVar("R")


def http_error_for(denied: Denied) -> HTTPException:
    if denied.is_not_found:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    if denied.is_conflict:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": denied.detail,
                "current_status": denied.current_status,
                "requested": denied.requested,
            },
        )
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)


def raise_for_denial(decision: Decision) -> None:
    if isinstance(decision, Denied):
        raise http_error_for(decision)


def allowed_resource(decision: Decision, kind: type[R]) -> R:
    """Raise for a denial, otherwise return the resource the guard fetched.

    Resource guards always attach what they fetched, so a missing or
    mistyped resource here means the wrong guard was called: 500.
    """
    raise_for_denial(decision)
    resource = getattr(decision, "resource", None)
    if not isinstance(resource, kind):
        raise HTTPException(status_code=500, detail="guard returned no resource")
    return resource


def status_changed_concurrently(resource_type: ResourceType) -> HTTPException:
    """The status read at check time was overwritten before our write."""
    STATUS_WRITE_CONFLICTS.labels(resource_type=resource_type.value).inc()
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"message": "status changed concurrently; reload and retry"},
    )
