from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from uuid import UUID

from estateflow.models.organization import SubscriptionStatus
from estateflow.models.organization_member import Role


class OrganizationResponse(BaseModel):
    id: UUID
    name: str
    brand_color: str
    logo_url: Optional[str] = None
    subscription_status: SubscriptionStatus
    member_count: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = None
    brand_color: Optional[str] = None
    logo_url: Optional[str] = None


class MemberResponse(BaseModel):
    agent_id: UUID
    email: str
    full_name: Optional[str] = None
    photo_url: Optional[str] = None
    role: Role
    joined_at: datetime
    active_deals: int = 0


class ChangeRoleRequest(BaseModel):
    role: str


class TransferAdminRequest(BaseModel):
    agent_id: UUID


class OrganizationStats(BaseModel):
    total_deals: int
    active_deals: int
    completed_this_month: int
    member_count: int
