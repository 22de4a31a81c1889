from pydantic import BaseModel
from typing import Optional, List
from datetime import date
from uuid import UUID

from estateflow.models.timeline_step import StepStatus
from estateflow.services.dashboard import AlertLevel, AlertType


class AlertResponse(BaseModel):
    deal_id: UUID
    deal_name: str
    client_name: str
    step_id: UUID
    step_title: str
    alert_type: AlertType
    alert_level: AlertLevel
    days_overdue: int
    due_date: Optional[date] = None
    agent_id: Optional[UUID] = None
    agent_name: Optional[str] = None


class WeekItemResponse(BaseModel):
    deal_id: UUID
    deal_name: str
    client_name: str
    step_id: UUID
    step_title: str
    step_status: StepStatus
    due_date: date
    agent_id: Optional[UUID] = None
    agent_name: Optional[str] = None


class WeekDayResponse(BaseModel):
    date: date
    items: List[WeekItemResponse]


class KpisResponse(BaseModel):
    active_deals: int
    active_deals_trend: int
    alert_deals: int
    alert_critical: int
    alert_warning: int
    completed_this_month: int
    completed_trend: int
    avg_completion_days: int
    avg_completion_trend: int


class TeamMemberStatsResponse(BaseModel):
    agent_id: UUID
    agent_name: str
    photo_url: Optional[str] = None
    active_deals: int
    alert_critical: int
    alert_warning: int
    completed_this_month: int


class DashboardResponse(BaseModel):
    kpis: KpisResponse
    alerts: List[AlertResponse]
    today: List[AlertResponse]
    this_week: List[WeekDayResponse]


class OrganizationDashboardResponse(DashboardResponse):
    team: List[TeamMemberStatsResponse]
