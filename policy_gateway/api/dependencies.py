"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from policy_gateway.domain.exceptions import AuthorizationError
from policy_gateway.domain.models import Caller, Role
from policy_gateway.infrastructure.clients.payments import PaymentIntentGateway
from policy_gateway.infrastructure.database.session import get_db
from policy_gateway.services.coordinator import LifecycleCoordinator
from policy_gateway.services.view_counter import ViewCounterService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_caller(
    x_user_email: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Caller:
    """
    Identity forwarded by the authentication proxy.

    Credentials are verified upstream; this only requires that both headers
    are present and the role is known.
    """
    if not x_user_email or not x_user_email.strip():
        raise AuthorizationError("Missing caller identity")
    try:
        role = Role((x_user_role or "").strip().lower())
    except ValueError:
        raise AuthorizationError("Unknown caller role")
    return Caller(email=x_user_email.strip().lower(), role=role)


def get_payment_gateway() -> PaymentIntentGateway:
    """Provide payment processor client instance"""
    return PaymentIntentGateway()


def get_coordinator(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentIntentGateway = Depends(get_payment_gateway),
) -> LifecycleCoordinator:
    return LifecycleCoordinator(db, gateway, request_id=get_request_id(request))


def get_view_counter(db: Session = Depends(get_db)) -> ViewCounterService:
    return ViewCounterService(db)
