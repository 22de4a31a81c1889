"""
Public invitation endpoints. The invitation token is the only credential.
"""
from fastapi import APIRouter, Depends, Request

from estateflow.api.deps import get_membership_service
from estateflow.core.rate_limit import rate_limit
from estateflow.schemas.invitation import AcceptInviteRequest, AcceptInviteResponse, InviteInfoResponse
from estateflow.services.membership import MembershipService

router = APIRouter()


@router.get("/{token}", response_model=InviteInfoResponse)
@rate_limit(max_requests=30, window_seconds=300)
def get_invitation(token: str, request: Request, members: MembershipService = Depends(get_membership_service)):
    invitation, org = members.get_pending_invitation(token)
    return InviteInfoResponse(
        organization_name=org.name,
        email=invitation.email,
        role=invitation.role,
        expires_at=invitation.expires_at,
    )


@router.post("/{token}/accept", response_model=AcceptInviteResponse)
@rate_limit(max_requests=10, window_seconds=300)
def accept_invitation(
    token: str,
    body: AcceptInviteRequest,
    request: Request,
    members: MembershipService = Depends(get_membership_service),
):
    jwt_token, is_new_user = members.accept_invitation(token, body.full_name)
    return AcceptInviteResponse(token=jwt_token, is_new_user=is_new_user)
