from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict
from datetime import datetime
from uuid import UUID


class AgentResponse(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    brand_color: str
    logo_url: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AgentUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    brand_color: Optional[str] = None
    logo_url: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None


class AgentStats(BaseModel):
    total_deals: int = 0
    active_deals: int = 0
    completed_deals: int = 0
    archived_deals: int = 0
