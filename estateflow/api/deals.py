"""
Deal CRUD. Every read and write goes through the visibility filter.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from estateflow.api.deps import get_email_service, get_storage, require_org_context
from estateflow.core.context import RequestContext
from estateflow.core.security import generate_secure_token
from estateflow.db.session import get_db
from estateflow.models.agent import Agent
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.timeline_step import (
    DEFAULT_EXPECTED_DURATION_DAYS,
    DEFAULT_INACTIVITY_CRITICAL_DAYS,
    DEFAULT_INACTIVITY_WARNING_DAYS,
    TimelineStep,
)
from estateflow.models.timeline_template import TimelineTemplate
from estateflow.schemas.deal import CanCreateResponse, DealCreate, DealDetail, DealResponse, DealUpdate
from estateflow.services.email import EmailService
from estateflow.services.storage import DocumentStorage
from estateflow.services.visibility import get_visible_deal, visible_deals
from estateflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

TRIAL_DEAL_LIMIT = 1
TRIAL_LIMIT_MESSAGE = "Upgrade to Pro to create more deals"


def _trial_check(db: Session, ctx: RequestContext) -> CanCreateResponse:
    org = db.query(Organization).filter(Organization.id == ctx.organization_id).first()
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    deal_count = db.query(Deal).filter(Deal.organization_id == org.id).count()
    if org.subscription_status != SubscriptionStatus.ACTIVE and deal_count >= TRIAL_DEAL_LIMIT:
        return CanCreateResponse(can_create=False, deal_count=deal_count, reason=TRIAL_LIMIT_MESSAGE)
    return CanCreateResponse(can_create=True, deal_count=deal_count)


def _steps_from_template(template: TimelineTemplate, now: datetime) -> List[TimelineStep]:
    """Copy template steps and their thresholds onto new step rows."""
    steps = []
    for index, entry in enumerate(sorted(template.steps or [], key=lambda s: s.get("order", 0)), start=1):
        steps.append(TimelineStep(
            title=entry["title"],
            description=entry.get("description"),
            order=entry.get("order", index),
            expected_duration_days=entry.get("expected_duration_days") or DEFAULT_EXPECTED_DURATION_DAYS,
            inactivity_warning_days=entry.get("inactivity_warning_days") or DEFAULT_INACTIVITY_WARNING_DAYS,
            inactivity_critical_days=entry.get("inactivity_critical_days") or DEFAULT_INACTIVITY_CRITICAL_DAYS,
            last_activity_at=now,
        ))
    return steps


@router.get("", response_model=List[DealResponse])
def list_deals(
    status: Optional[DealStatus] = None,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    query = visible_deals(db, ctx)
    if status is not None:
        query = query.filter(Deal.status == status)
    return query.order_by(Deal.updated_at.desc()).all()


@router.get("/can-create", response_model=CanCreateResponse)
def can_create_deal(ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return _trial_check(db, ctx)


@router.get("/{deal_id}", response_model=DealDetail)
def get_deal(deal_id: UUID, ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return get_visible_deal(db, ctx, deal_id)


@router.post("", response_model=DealDetail, status_code=status.HTTP_201_CREATED)
def create_deal(
    body: DealCreate,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    email: EmailService = Depends(get_email_service),
):
    check = _trial_check(db, ctx)
    if not check.can_create:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=TRIAL_LIMIT_MESSAGE)

    client_name = body.client_name.strip()
    client_email = body.client_email.strip().lower()
    if not client_name or not client_email:
        raise HTTPException(status_code=400, detail="Client name and email are required")

    template = None
    if body.template_id is not None:
        template = db.query(TimelineTemplate).filter(TimelineTemplate.id == body.template_id).first()
        if template is None:
            raise HTTPException(status_code=400, detail="Template not found")

    now = utcnow()
    deal = Deal(
        organization_id=ctx.organization_id,
        assigned_to_agent_id=ctx.agent_id,
        created_by_agent_id=ctx.agent_id,
        client_name=client_name,
        client_email=client_email,
        property_address=body.property_address,
        property_photo_url=body.property_photo_url,
        welcome_message=body.welcome_message or f"Welcome {client_name}, follow the progress of your transaction here.",
        status=DealStatus.ACTIVE,
        access_token=generate_secure_token(),
        created_at=now,
        updated_at=now,
    )
    if template is not None:
        deal.steps = _steps_from_template(template, now)
    db.add(deal)
    db.commit()
    db.refresh(deal)

    agent = db.query(Agent).filter(Agent.id == ctx.agent_id).first()
    email.send_new_deal(
        to_email=deal.client_email,
        client_name=deal.client_name,
        agent_name=agent.display_name if agent else "Your agent",
        access_token=deal.access_token,
        welcome_message=deal.welcome_message,
    )
    logger.info("[DEALS] Agent %s created deal %s in org %s", ctx.agent_id, deal.id, ctx.organization_id)
    return deal


@router.put("/{deal_id}", response_model=DealDetail)
def update_deal(
    deal_id: UUID,
    body: DealUpdate,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    deal = get_visible_deal(db, ctx, deal_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field in ("client_name", "client_email", "status"):
            continue
        setattr(deal, field, value)
    deal.updated_at = utcnow()
    db.commit()
    db.refresh(deal)
    return deal


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deal(
    deal_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
):
    deal = get_visible_deal(db, ctx, deal_id)
    if not ctx.is_team_lead_or_above():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Team lead or admin access required")

    paths = [p for doc in deal.documents for p in (doc.file_path, doc.signed_file_path) if p]
    db.delete(deal)
    db.commit()
    for path in paths:
        storage.delete(path)
    logger.info("[DEALS] Deal %s deleted by %s", deal_id, ctx.agent_id)
