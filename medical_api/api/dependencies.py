"""
Request-scoped dependencies: the authenticated actor, request metadata, and
the access service bound to the request's database session.

Authentication is a header-based stand-in for a real identity provider. The
service layer trusts whatever Actor this module produces.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from medical_api.models.database import get_db
from medical_api.services.access import AccessService, Actor
from medical_api.services.audit import RequestMetadata
from medical_api.services.policy import Role
from medical_api.services.store import RecordStore


def get_current_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_user_department: str | None = Header(default=None),
) -> Actor:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown role")
    return Actor(id=x_user_id, role=role, department=x_user_department)


def require_role(allowed: Iterable[Role]) -> Callable[..., Actor]:
    """Dependency factory limiting a route to the given roles."""
    allowed_roles = frozenset(allowed)

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=403, detail="Insufficient permissions for this resource"
            )
        return actor

    return dependency


def get_request_metadata(request: Request) -> RequestMetadata:
    ip_address = (
        request.headers.get("x-forwarded-for")
        or request.headers.get("x-real-ip")
        or (request.client.host if request.client else None)
        or "unknown"
    )
    return RequestMetadata(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent", "unknown"),
    )


def get_access_service(db: Session = Depends(get_db)) -> AccessService:
    return AccessService(RecordStore(db))
