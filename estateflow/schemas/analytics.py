from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from estateflow.models.deal_view import ViewType


class DealViewResponse(BaseModel):
    id: UUID
    view_type: ViewType
    document_id: Optional[UUID] = None
    user_agent: Optional[str] = None
    viewed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DealAnalytics(BaseModel):
    total_views: int
    total_downloads: int
    last_viewed_at: Optional[datetime] = None
    recent_views: List[DealViewResponse]
