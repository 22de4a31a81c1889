from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from estateflow.api.deps import get_email_service, require_org_context
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.deal import Deal
from estateflow.models.timeline_step import (
    DEFAULT_EXPECTED_DURATION_DAYS,
    DEFAULT_INACTIVITY_CRITICAL_DAYS,
    DEFAULT_INACTIVITY_WARNING_DAYS,
    StepStatus,
    TimelineStep,
)
from estateflow.schemas.deal import StepCreate, StepResponse, StepUpdate
from estateflow.services.email import EmailService
from estateflow.services.visibility import get_visible_deal
from estateflow.utils.clock import utcnow

router = APIRouter()

STATUS_LABELS = {
    StepStatus.PENDING: "pending",
    StepStatus.IN_PROGRESS: "in progress",
    StepStatus.COMPLETED: "completed",
}


def _get_step(db: Session, deal: Deal, step_id: UUID) -> TimelineStep:
    step = db.query(TimelineStep).filter(TimelineStep.id == step_id, TimelineStep.deal_id == deal.id).first()
    if step is None:
        raise HTTPException(status_code=404, detail="Step not found")
    return step


@router.get("/{deal_id}/steps", response_model=List[StepResponse])
def list_steps(deal_id: UUID, ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return get_visible_deal(db, ctx, deal_id).steps


@router.post("/{deal_id}/steps", response_model=StepResponse, status_code=status.HTTP_201_CREATED)
def create_step(
    deal_id: UUID,
    body: StepCreate,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    deal = get_visible_deal(db, ctx, deal_id)
    max_order = db.query(func.max(TimelineStep.order)).filter(TimelineStep.deal_id == deal.id).scalar() or 0
    now = utcnow()
    step = TimelineStep(
        deal_id=deal.id,
        title=body.title,
        description=body.description,
        due_date=body.due_date,
        order=max_order + 1,
        status=StepStatus.PENDING,
        expected_duration_days=body.expected_duration_days or DEFAULT_EXPECTED_DURATION_DAYS,
        inactivity_warning_days=body.inactivity_warning_days or DEFAULT_INACTIVITY_WARNING_DAYS,
        inactivity_critical_days=body.inactivity_critical_days or DEFAULT_INACTIVITY_CRITICAL_DAYS,
        last_activity_at=now,
    )
    db.add(step)
    db.commit()
    db.refresh(step)
    return step


@router.put("/{deal_id}/steps/{step_id}", response_model=StepResponse)
def update_step(
    deal_id: UUID,
    step_id: UUID,
    body: StepUpdate,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    email: EmailService = Depends(get_email_service),
):
    deal = get_visible_deal(db, ctx, deal_id)
    step = _get_step(db, deal, step_id)
    now = utcnow()

    updates = body.model_dump(exclude_unset=True)
    new_status = updates.pop("status", None)
    for field, value in updates.items():
        if value is None and field in ("title", "order", "expected_duration_days",
                                       "inactivity_warning_days", "inactivity_critical_days"):
            continue
        setattr(step, field, value)

    status_changed = new_status is not None and new_status != step.status
    if status_changed:
        step.status = new_status
        if new_status == StepStatus.IN_PROGRESS:
            step.started_at = step.started_at or now
            step.completed_at = None
        elif new_status == StepStatus.COMPLETED:
            step.completed_at = now
        elif new_status == StepStatus.PENDING:
            step.completed_at = None
        else:
            raise ValueError(f"Unhandled step status: {new_status!r}")

    step.last_activity_at = now
    db.commit()
    db.refresh(step)

    if status_changed:
        email.send_step_update(
            to_email=deal.client_email,
            client_name=deal.client_name,
            step_title=step.title,
            step_status=STATUS_LABELS[step.status],
            access_token=deal.access_token,
        )
    return step


@router.delete("/{deal_id}/steps/{step_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_step(
    deal_id: UUID,
    step_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    deal = get_visible_deal(db, ctx, deal_id)
    step = _get_step(db, deal, step_id)
    db.delete(step)
    db.commit()
