"""
Dashboard aggregation: KPIs, alerts, the "today" list and the seven-day
schedule, computed from deals and their timeline steps.

The compute_* functions are pure and take the reference day explicitly;
DashboardService only loads the deals for a scope and hands them over.
"""
import enum
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from estateflow.models.agent import Agent
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.organization_member import OrganizationMember
from estateflow.models.timeline_step import StepStatus, TimelineStep
from estateflow.utils.clock import month_start, next_month_start, previous_month_start, utc_today

DUE_SOON_DAYS = 2
WEEK_DAYS = 7
UNASSIGNED = "Unassigned"


class AlertType(str, enum.Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    INACTIVE = "inactive"


class AlertLevel(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"


@dataclass
class Alert:
    deal_id: uuid.UUID
    deal_name: str
    client_name: str
    step_id: uuid.UUID
    step_title: str
    alert_type: AlertType
    alert_level: AlertLevel
    days_overdue: int
    due_date: Optional[date]
    agent_id: Optional[uuid.UUID] = None
    agent_name: Optional[str] = None


@dataclass
class WeekItem:
    deal_id: uuid.UUID
    deal_name: str
    client_name: str
    step_id: uuid.UUID
    step_title: str
    step_status: StepStatus
    due_date: date
    agent_id: Optional[uuid.UUID] = None
    agent_name: Optional[str] = None


@dataclass
class WeekDay:
    date: date
    items: List[WeekItem] = field(default_factory=list)


@dataclass
class Kpis:
    active_deals: int
    active_deals_trend: int
    alert_deals: int
    alert_critical: int
    alert_warning: int
    completed_this_month: int
    completed_trend: int
    avg_completion_days: int
    avg_completion_trend: int


@dataclass
class TeamMemberStats:
    agent_id: uuid.UUID
    agent_name: str
    photo_url: Optional[str]
    active_deals: int
    alert_critical: int
    alert_warning: int
    completed_this_month: int


@dataclass
class Dashboard:
    kpis: Kpis
    alerts: List[Alert]
    today: List[Alert]
    this_week: List[WeekDay]
    team: Optional[List[TeamMemberStats]] = None


def _is_open(step: TimelineStep) -> bool:
    if step.status in (StepStatus.PENDING, StepStatus.IN_PROGRESS):
        return True
    if step.status == StepStatus.COMPLETED:
        return False
    raise ValueError(f"Unhandled step status: {step.status!r}")


def _is_active(deal: Deal) -> bool:
    if deal.status == DealStatus.ACTIVE:
        return True
    if deal.status in (DealStatus.COMPLETED, DealStatus.ARCHIVED):
        return False
    raise ValueError(f"Unhandled deal status: {deal.status!r}")


def _level_rank(level: AlertLevel) -> int:
    if level == AlertLevel.CRITICAL:
        return 0
    if level == AlertLevel.WARNING:
        return 1
    raise ValueError(f"Unhandled alert level: {level!r}")


def step_alerts(deal: Deal, step: TimelineStep, today: date) -> List[Alert]:
    """
    Alerts raised by one open step. Due-date and inactivity checks are
    independent, so a step can produce one of each.
    """
    alerts = []

    def make(alert_type: AlertType, level: AlertLevel, days: int) -> Alert:
        return Alert(
            deal_id=deal.id,
            deal_name=deal.display_name,
            client_name=deal.client_name,
            step_id=step.id,
            step_title=step.title,
            alert_type=alert_type,
            alert_level=level,
            days_overdue=days,
            due_date=step.due_date,
        )

    if step.due_date is not None:
        if step.due_date < today:
            alerts.append(make(AlertType.OVERDUE, AlertLevel.CRITICAL, (today - step.due_date).days))
        elif step.due_date <= today + timedelta(days=DUE_SOON_DAYS):
            alerts.append(make(AlertType.DUE_SOON, AlertLevel.WARNING, 0))

    if step.last_activity_at is not None:
        idle_days = (today - step.last_activity_at.date()).days
        if idle_days >= step.inactivity_critical_days:
            alerts.append(make(AlertType.INACTIVE, AlertLevel.CRITICAL, idle_days))
        elif idle_days >= step.inactivity_warning_days:
            alerts.append(make(AlertType.INACTIVE, AlertLevel.WARNING, idle_days))

    return alerts


def sort_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Critical first, then by due date with undated alerts last. Stable."""
    return sorted(
        alerts,
        key=lambda a: (_level_rank(a.alert_level), a.due_date is None, a.due_date or date.min),
    )


def compute_alerts(deals: Iterable[Deal], today: date) -> List[Alert]:
    alerts = []
    for deal in deals:
        if not _is_active(deal):
            continue
        for step in deal.steps:
            if _is_open(step):
                alerts.extend(step_alerts(deal, step, today))
    return sort_alerts(alerts)


def today_alerts(alerts: Iterable[Alert], today: date) -> List[Alert]:
    tomorrow = today + timedelta(days=1)
    return [
        a for a in alerts
        if a.alert_level == AlertLevel.CRITICAL or a.due_date == today or a.due_date == tomorrow
    ]


def week_schedule(deals: Iterable[Deal], today: date) -> List[WeekDay]:
    horizon = today + timedelta(days=WEEK_DAYS)
    items = []
    for deal in deals:
        if not _is_active(deal):
            continue
        for step in deal.steps:
            if not _is_open(step) or step.due_date is None:
                continue
            if today <= step.due_date <= horizon:
                items.append(WeekItem(
                    deal_id=deal.id,
                    deal_name=deal.display_name,
                    client_name=deal.client_name,
                    step_id=step.id,
                    step_title=step.title,
                    step_status=step.status,
                    due_date=step.due_date,
                ))

    days: "OrderedDict[date, WeekDay]" = OrderedDict()
    for item in sorted(items, key=lambda i: i.due_date):
        days.setdefault(item.due_date, WeekDay(date=item.due_date)).items.append(item)
    return list(days.values())


def _completed_between(deals: Sequence[Deal], start, end) -> int:
    return sum(
        1 for d in deals
        if d.status == DealStatus.COMPLETED and start <= d.updated_at < end
    )


def compute_kpis(deals: Sequence[Deal], alerts: Sequence[Alert], today: date) -> Kpis:
    this_month = month_start(today)
    last_month = previous_month_start(today)
    following_month = next_month_start(today)

    active = [d for d in deals if _is_active(d)]
    completed = [d for d in deals if d.status == DealStatus.COMPLETED]

    completed_this_month = _completed_between(deals, this_month, following_month)
    completed_last_month = _completed_between(deals, last_month, this_month)

    # Approximation: no historical snapshots exist, so "active last month" is
    # deals opened before this month that are still active or closed this month.
    active_last_month = sum(
        1 for d in deals
        if d.created_at < this_month and (
            d.status == DealStatus.ACTIVE
            or (d.status == DealStatus.COMPLETED and d.updated_at >= this_month)
        )
    )

    if completed:
        avg_completion_days = int(sum((d.updated_at - d.created_at).days for d in completed) / len(completed))
    else:
        avg_completion_days = 0

    return Kpis(
        active_deals=len(active),
        active_deals_trend=len(active) - active_last_month,
        alert_deals=len({a.deal_id for a in alerts}),
        alert_critical=sum(1 for a in alerts if a.alert_level == AlertLevel.CRITICAL),
        alert_warning=sum(1 for a in alerts if a.alert_level == AlertLevel.WARNING),
        completed_this_month=completed_this_month,
        completed_trend=completed_this_month - completed_last_month,
        avg_completion_days=avg_completion_days,
        avg_completion_trend=0,
    )


def build_dashboard(deals: Sequence[Deal], today: date) -> Dashboard:
    alerts = compute_alerts(deals, today)
    return Dashboard(
        kpis=compute_kpis(deals, alerts, today),
        alerts=alerts,
        today=today_alerts(alerts, today),
        this_week=week_schedule(deals, today),
    )


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def _deals(self, organization_id: uuid.UUID, agent_id: Optional[uuid.UUID] = None) -> List[Deal]:
        query = (
            self.db.query(Deal)
            .options(selectinload(Deal.steps))
            .filter(Deal.organization_id == organization_id)
        )
        if agent_id is not None:
            query = query.filter(Deal.assigned_to_agent_id == agent_id)
        return query.all()

    def agent_dashboard(self, organization_id: uuid.UUID, agent_id: uuid.UUID,
                        today: Optional[date] = None) -> Dashboard:
        today = today or utc_today()
        return build_dashboard(self._deals(organization_id, agent_id), today)

    def organization_dashboard(self, organization_id: uuid.UUID, today: Optional[date] = None) -> Dashboard:
        today = today or utc_today()
        deals = self._deals(organization_id)
        dashboard = build_dashboard(deals, today)

        members = (
            self.db.query(OrganizationMember, Agent)
            .join(Agent, Agent.id == OrganizationMember.agent_id)
            .filter(OrganizationMember.organization_id == organization_id)
            .order_by(OrganizationMember.joined_at.asc())
            .all()
        )
        agents: Dict[uuid.UUID, Agent] = {agent.id: agent for _, agent in members}
        assignee_by_deal = {d.id: d.assigned_to_agent_id for d in deals}
        for agent_id in set(assignee_by_deal.values()) - set(agents) - {None}:
            agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
            if agent is not None:
                agents[agent.id] = agent

        def decorate(item):
            agent_id = assignee_by_deal.get(item.deal_id)
            agent = agents.get(agent_id) if agent_id else None
            return replace(item, agent_id=agent_id, agent_name=agent.display_name if agent else UNASSIGNED)

        dashboard.alerts = [decorate(a) for a in dashboard.alerts]
        dashboard.today = [decorate(a) for a in dashboard.today]
        dashboard.this_week = [
            WeekDay(date=day.date, items=[decorate(i) for i in day.items]) for day in dashboard.this_week
        ]

        this_month = month_start(today)
        following_month = next_month_start(today)
        team = []
        for _, agent in members:
            own_deals = [d for d in deals if d.assigned_to_agent_id == agent.id]
            own_alerts = [a for a in dashboard.alerts if a.agent_id == agent.id]
            team.append(TeamMemberStats(
                agent_id=agent.id,
                agent_name=agent.display_name,
                photo_url=agent.photo_url,
                active_deals=sum(1 for d in own_deals if _is_active(d)),
                alert_critical=sum(1 for a in own_alerts if a.alert_level == AlertLevel.CRITICAL),
                alert_warning=sum(1 for a in own_alerts if a.alert_level == AlertLevel.WARNING),
                completed_this_month=_completed_between(own_deals, this_month, following_month),
            ))
        dashboard.team = team
        return dashboard
