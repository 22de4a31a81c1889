from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from estateflow.api.deps import get_request_context, require_org_context
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.agent import Agent
from estateflow.models.deal import Deal, DealStatus
from estateflow.schemas.agent import AgentResponse, AgentStats, AgentUpdate
from estateflow.schemas.dashboard import DashboardResponse
from estateflow.services.dashboard import DashboardService
from estateflow.services.visibility import visible_deals

router = APIRouter()


def _current_agent(db: Session, ctx: RequestContext) -> Agent:
    agent = db.query(Agent).filter(Agent.id == ctx.agent_id).first()
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.get("/me", response_model=AgentResponse)
def get_me(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    return _current_agent(db, ctx)


@router.put("/me", response_model=AgentResponse)
def update_me(
    body: AgentUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    agent = _current_agent(db, ctx)
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "brand_color" and not value:
            continue
        setattr(agent, field, value)
    db.commit()
    db.refresh(agent)
    return agent


@router.get("/me/stats", response_model=AgentStats)
def get_my_stats(ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    """Deal counts by status over the deals the caller can see."""
    counts = dict(
        visible_deals(db, ctx)
        .with_entities(Deal.status, func.count(Deal.id))
        .group_by(Deal.status)
        .all()
    )
    return AgentStats(
        total_deals=sum(counts.values()),
        active_deals=counts.get(DealStatus.ACTIVE, 0),
        completed_deals=counts.get(DealStatus.COMPLETED, 0),
        archived_deals=counts.get(DealStatus.ARCHIVED, 0),
    )


@router.get("/me/dashboard", response_model=DashboardResponse)
def get_my_dashboard(ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return DashboardService(db).agent_dashboard(ctx.organization_id, ctx.agent_id)
