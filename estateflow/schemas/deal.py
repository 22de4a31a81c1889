from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime, date
from uuid import UUID

from estateflow.models.deal import DealStatus
from estateflow.models.document import DocumentCategory
from estateflow.models.timeline_step import StepStatus


class StepCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    expected_duration_days: Optional[int] = None
    inactivity_warning_days: Optional[int] = None
    inactivity_critical_days: Optional[int] = None


class StepUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[StepStatus] = None
    due_date: Optional[date] = None
    order: Optional[int] = None
    expected_duration_days: Optional[int] = None
    inactivity_warning_days: Optional[int] = None
    inactivity_critical_days: Optional[int] = None


class StepResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    status: StepStatus
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    order: int
    expected_duration_days: int
    inactivity_warning_days: int
    inactivity_critical_days: int
    started_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(BaseModel):
    id: UUID
    filename: str
    category: DocumentCategory
    uploaded_at: datetime
    signature_status: Optional[str] = None
    signed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DealCreate(BaseModel):
    client_name: str
    client_email: str
    property_address: Optional[str] = None
    property_photo_url: Optional[str] = None
    welcome_message: Optional[str] = None
    template_id: Optional[UUID] = None


class DealUpdate(BaseModel):
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    property_address: Optional[str] = None
    property_photo_url: Optional[str] = None
    welcome_message: Optional[str] = None
    status: Optional[DealStatus] = None


class DealResponse(BaseModel):
    id: UUID
    organization_id: UUID
    assigned_to_agent_id: Optional[UUID] = None
    created_by_agent_id: Optional[UUID] = None
    client_name: str
    client_email: str
    property_address: Optional[str] = None
    property_photo_url: Optional[str] = None
    welcome_message: Optional[str] = None
    status: DealStatus
    access_token: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DealDetail(DealResponse):
    steps: List[StepResponse] = []
    documents: List[DocumentResponse] = []


class CanCreateResponse(BaseModel):
    can_create: bool
    deal_count: int
    reason: Optional[str] = None


class AssignDealRequest(BaseModel):
    agent_id: UUID


class SignatureResponse(BaseModel):
    document_id: UUID
    signature_request_id: Optional[str] = None
    signature_status: Optional[str] = None
    signature_link: Optional[str] = None
    signed_at: Optional[datetime] = None
