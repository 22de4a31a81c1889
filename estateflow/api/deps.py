from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from estateflow.db.session import get_db
from estateflow.core.config import Settings, get_settings
from estateflow.core.context import RequestContext, resolve_request_context
from estateflow.core.security import decode_access_token
from estateflow.services.auth import AuthService
from estateflow.services.email import EmailService
from estateflow.services.membership import MembershipService
from estateflow.services.seat_billing import SeatBillingReconciler
from estateflow.services.signature import YousignClient
from estateflow.services.storage import DocumentStorage
from estateflow.services.stripe_gateway import StripeBillingGateway

security = HTTPBearer(auto_error=False)


def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> RequestContext:
    """
    Resolve the caller from the bearer token. Every failure is the same
    generic 401 so the response does not say why a token was rejected.
    """
    payload = decode_access_token(credentials.credentials, settings) if credentials else None
    ctx = resolve_request_context(payload) if payload is not None else None
    if ctx is None or not ctx.has_identity:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx


def require_org_context(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """The caller must be acting inside an organization."""
    if not ctx.has_organization:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No organization selected")
    return ctx


def require_team_lead(ctx: RequestContext = Depends(require_org_context)) -> RequestContext:
    if not ctx.is_team_lead_or_above():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Team lead or admin access required")
    return ctx


def require_admin(ctx: RequestContext = Depends(require_org_context)) -> RequestContext:
    if not ctx.is_admin():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can perform this action")
    return ctx


# Collaborators, built per request from injected settings

def get_email_service(settings: Settings = Depends(get_settings)) -> EmailService:
    return EmailService(settings)


def get_billing_gateway(settings: Settings = Depends(get_settings)) -> StripeBillingGateway:
    return StripeBillingGateway(settings.STRIPE_SECRET_KEY)


def get_signature_client(settings: Settings = Depends(get_settings)) -> YousignClient:
    return YousignClient(settings)


def get_storage(settings: Settings = Depends(get_settings)) -> DocumentStorage:
    return DocumentStorage(settings.UPLOAD_PATH)


def get_seat_billing(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: StripeBillingGateway = Depends(get_billing_gateway),
) -> SeatBillingReconciler:
    return SeatBillingReconciler(db=db, settings=settings, gateway=gateway)


def get_membership_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    seats: SeatBillingReconciler = Depends(get_seat_billing),
    email: EmailService = Depends(get_email_service),
) -> MembershipService:
    return MembershipService(db=db, settings=settings, seats=seats, email=email)


def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email: EmailService = Depends(get_email_service),
) -> AuthService:
    return AuthService(db, settings, email)
