"""
The caller's current organization: profile, members, invitations, team deals
and dashboards. The organization always comes from the token, never the path.
"""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from estateflow.api.deps import get_membership_service, require_org_context, require_team_lead
from estateflow.core.context import RequestContext
from estateflow.core.rate_limit import rate_limit
from estateflow.db.session import get_db
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.organization import Organization
from estateflow.models.organization_member import OrganizationMember
from estateflow.schemas.dashboard import DashboardResponse, OrganizationDashboardResponse
from estateflow.schemas.deal import AssignDealRequest, DealResponse
from estateflow.schemas.invitation import InvitationResponse, InviteRequest
from estateflow.schemas.organization import (
    ChangeRoleRequest,
    MemberResponse,
    OrganizationResponse,
    OrganizationStats,
    OrganizationUpdate,
    TransferAdminRequest,
)
from estateflow.services.dashboard import DashboardService
from estateflow.services.membership import MemberSummary, MembershipService
from estateflow.utils.clock import month_start, next_month_start, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def _org_response(db: Session, org: Organization) -> OrganizationResponse:
    member_count = db.query(func.count(OrganizationMember.agent_id)).filter(
        OrganizationMember.organization_id == org.id
    ).scalar() or 0
    response = OrganizationResponse.model_validate(org)
    response.member_count = member_count
    return response


def _member_response(summary: MemberSummary) -> MemberResponse:
    return MemberResponse(
        agent_id=summary.agent.id,
        email=summary.agent.email,
        full_name=summary.agent.full_name,
        photo_url=summary.agent.photo_url,
        role=summary.membership.role,
        joined_at=summary.membership.joined_at,
        active_deals=summary.active_deals,
    )


def _is_member(db: Session, organization_id: UUID, agent_id: UUID) -> bool:
    return db.query(OrganizationMember).filter(
        OrganizationMember.organization_id == organization_id,
        OrganizationMember.agent_id == agent_id,
    ).first() is not None


@router.get("", response_model=OrganizationResponse)
def get_organization(ctx: RequestContext = Depends(require_org_context), db: Session = Depends(get_db)):
    org = db.query(Organization).filter(Organization.id == ctx.organization_id).first()
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return _org_response(db, org)


@router.put("", response_model=OrganizationResponse)
def update_organization(
    body: OrganizationUpdate,
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    members: MembershipService = Depends(get_membership_service),
):
    org = members.update_organization(ctx, body.model_dump(exclude_unset=True))
    return _org_response(db, org)


# Members

@router.get("/members", response_model=List[MemberResponse])
def list_members(
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    return [_member_response(s) for s in members.list_members(ctx)]


@router.put("/members/{agent_id}/role", status_code=status.HTTP_204_NO_CONTENT)
def change_member_role(
    agent_id: UUID,
    body: ChangeRoleRequest,
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    members.change_member_role(ctx, agent_id, body.role)


@router.delete("/members/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    agent_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    members.remove_member(ctx, agent_id)


@router.post("/transfer-admin", status_code=status.HTTP_204_NO_CONTENT)
def transfer_admin(
    body: TransferAdminRequest,
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    """The caller steps down to TeamLead; the client must re-login to pick up the new role."""
    members.transfer_admin(ctx, body.agent_id)


# Invitations

@router.get("/invitations", response_model=List[InvitationResponse])
def list_invitations(
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    return members.list_invitations(ctx)


@router.post("/invite", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
@rate_limit(max_requests=20, window_seconds=900)
def invite_member(
    request: Request,
    body: InviteRequest,
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    return members.create_invitation(ctx, body.email, body.role)


@router.delete("/invitations/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_invitation(
    invitation_id: UUID,
    ctx: RequestContext = Depends(require_org_context),
    members: MembershipService = Depends(get_membership_service),
):
    members.cancel_invitation(ctx, invitation_id)


# Team deals

@router.get("/deals", response_model=List[DealResponse])
def list_organization_deals(
    status: Optional[DealStatus] = None,
    assigned_to: Optional[UUID] = None,
    ctx: RequestContext = Depends(require_team_lead),
    db: Session = Depends(get_db),
):
    query = db.query(Deal).filter(Deal.organization_id == ctx.organization_id)
    if status is not None:
        query = query.filter(Deal.status == status)
    if assigned_to is not None:
        query = query.filter(Deal.assigned_to_agent_id == assigned_to)
    return query.order_by(Deal.updated_at.desc()).all()


@router.get("/stats", response_model=OrganizationStats)
def get_organization_stats(ctx: RequestContext = Depends(require_team_lead), db: Session = Depends(get_db)):
    now = utcnow()
    deals = db.query(Deal).filter(Deal.organization_id == ctx.organization_id)
    return OrganizationStats(
        total_deals=deals.count(),
        active_deals=deals.filter(Deal.status == DealStatus.ACTIVE).count(),
        completed_this_month=deals.filter(
            Deal.status == DealStatus.COMPLETED,
            Deal.updated_at >= month_start(now.date()),
            Deal.updated_at < next_month_start(now.date()),
        ).count(),
        member_count=db.query(func.count(OrganizationMember.agent_id)).filter(
            OrganizationMember.organization_id == ctx.organization_id
        ).scalar() or 0,
    )


@router.put("/deals/{deal_id}/assign", response_model=DealResponse)
def assign_deal(
    deal_id: UUID,
    body: AssignDealRequest,
    ctx: RequestContext = Depends(require_team_lead),
    db: Session = Depends(get_db),
):
    deal = db.query(Deal).filter(Deal.id == deal_id, Deal.organization_id == ctx.organization_id).first()
    if deal is None:
        raise HTTPException(status_code=404, detail="Deal not found")
    if not _is_member(db, ctx.organization_id, body.agent_id):
        raise HTTPException(status_code=400, detail="Agent is not a member of this organization")

    deal.assigned_to_agent_id = body.agent_id
    deal.updated_at = utcnow()
    db.commit()
    db.refresh(deal)
    logger.info("[DEALS] Deal %s assigned to %s by %s", deal.id, body.agent_id, ctx.agent_id)
    return deal


# Dashboards

@router.get("/dashboard", response_model=OrganizationDashboardResponse)
def get_organization_dashboard(ctx: RequestContext = Depends(require_team_lead), db: Session = Depends(get_db)):
    return DashboardService(db).organization_dashboard(ctx.organization_id)


@router.get("/members/{agent_id}/dashboard", response_model=DashboardResponse)
def get_member_dashboard(
    agent_id: UUID,
    ctx: RequestContext = Depends(require_team_lead),
    db: Session = Depends(get_db),
):
    if not _is_member(db, ctx.organization_id, agent_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return DashboardService(db).agent_dashboard(ctx.organization_id, agent_id)
