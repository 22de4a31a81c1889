from pydantic import BaseModel
from typing import Optional, List, Dict
from uuid import UUID

from estateflow.models.deal import DealStatus
from estateflow.schemas.deal import StepResponse, DocumentResponse


class PublicAgent(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None


class PublicBrand(BaseModel):
    name: str
    brand_color: str
    logo_url: Optional[str] = None


class PublicDeal(BaseModel):
    id: UUID
    client_name: str
    property_address: Optional[str] = None
    property_photo_url: Optional[str] = None
    welcome_message: Optional[str] = None
    status: DealStatus
    agent: PublicAgent
    brand: PublicBrand
    steps: List[StepResponse]
    documents: List[DocumentResponse]
