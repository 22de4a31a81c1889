from fastapi import APIRouter, Depends, HTTPException, Request

from estateflow.api.deps import get_auth_service
from estateflow.core.rate_limit import rate_limit
from estateflow.schemas.agent import AgentResponse
from estateflow.schemas.auth import CallbackRequest, LoginRequest, LoginResponse, TokenResponse
from estateflow.services.auth import AuthService

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@rate_limit(max_requests=5, window_seconds=300)  # 5 login emails per 5 min per IP
def login(
    body: LoginRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
):
    """
    Send a magic link. The answer is the same for known and unknown emails.
    """
    if not body.email or not body.email.strip():
        raise HTTPException(status_code=400, detail="Email is required")
    return LoginResponse(message=auth.request_magic_link(body.email))


@router.post("/callback", response_model=TokenResponse)
@rate_limit(max_requests=10, window_seconds=300)  # 10 attempts per 5 min per IP
def callback(
    body: CallbackRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
):
    """Exchange a magic-link token for a session JWT."""
    token, agent = auth.verify_magic_link(body.token)
    return TokenResponse(token=token, agent=AgentResponse.model_validate(agent))
