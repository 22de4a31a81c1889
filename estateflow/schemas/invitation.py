from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from uuid import UUID

from estateflow.models.organization_member import Role


class InviteRequest(BaseModel):
    """Org admin: invite someone to the organization."""
    email: str
    role: str = Role.EMPLOYEE.value


class InvitationResponse(BaseModel):
    id: UUID
    organization_id: UUID
    email: str
    role: Role
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InviteInfoResponse(BaseModel):
    """Public: what the invitation link is for."""
    organization_name: str
    email: str
    role: Role
    expires_at: datetime


class AcceptInviteRequest(BaseModel):
    """Full name is required only when no account exists for the invited email."""
    full_name: Optional[str] = None


class AcceptInviteResponse(BaseModel):
    token: str
    is_new_user: bool
