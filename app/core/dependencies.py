"""
FastAPI dependency injection utilities.

Provides reusable dependencies for authentication and for the
request actor recorded in audit logs.
"""

from typing import Annotated

from fastapi import Depends, Request

from app.core.auth import (
    BILLS_PAY,
    BULK_EXECUTE,
    AuthenticatedUser,
    require_permission,
)
from app.core.logging import bind_actor
from app.schemas.bulk import Actor


def require_bulk_execute(
    user: AuthenticatedUser = Depends(require_permission(BULK_EXECUTE)),
) -> AuthenticatedUser:
    """Require bulk:execute permission to run bulk entity actions."""
    return user


def require_bills_pay(
    user: AuthenticatedUser = Depends(require_permission(BILLS_PAY)),
) -> AuthenticatedUser:
    """Require bills:pay permission for invoice upload and bill payment."""
    return user


RequireBulkExecute = Annotated[AuthenticatedUser, Depends(require_bulk_execute)]
RequireBillsPay = Annotated[AuthenticatedUser, Depends(require_bills_pay)]


def client_ip(request: Request) -> str:
    """Client address, preferring the first hop recorded by a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def get_bulk_actor(request: Request, user: RequireBulkExecute) -> Actor:
    """Build the audit actor for the authenticated back-office user."""
    actor = Actor(
        user_id=user.user_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    bind_actor(actor.user_id, actor.ip_address)
    return actor


BulkActor = Annotated[Actor, Depends(get_bulk_actor)]


def get_customer_actor(request: Request, user: RequireBillsPay) -> Actor:
    """Build the actor for the authenticated customer paying a bill."""
    actor = Actor(
        user_id=user.user_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    bind_actor(actor.user_id, actor.ip_address)
    return actor


CustomerActor = Annotated[Actor, Depends(get_customer_actor)]
