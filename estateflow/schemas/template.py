from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from uuid import UUID


class TemplateStep(BaseModel):
    title: str
    description: Optional[str] = None
    order: int
    expected_duration_days: Optional[int] = None
    inactivity_warning_days: Optional[int] = None
    inactivity_critical_days: Optional[int] = None


class TemplateResponse(BaseModel):
    id: UUID
    name: str
    steps: List[TemplateStep]

    model_config = ConfigDict(from_attributes=True)
