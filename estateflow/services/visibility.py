"""
Deal visibility: which deals a RequestContext may read or mutate.

Every deal query goes through deal_visibility_predicate() so that status,
assignee and ordering filters compose on top of the tenant scope.
"""
import uuid

from fastapi import HTTPException, status
from sqlalchemy import and_
from sqlalchemy.orm import Query, Session

from estateflow.core.context import RequestContext
from estateflow.models.deal import Deal
from estateflow.models.organization_member import Role


def deal_visibility_predicate(ctx: RequestContext):
    """
    Employees see the deals assigned to them; Admins and TeamLeads see the
    whole organization. The organization is pinned for every role.
    """
    if ctx.role == Role.EMPLOYEE:
        return and_(
            Deal.organization_id == ctx.organization_id,
            Deal.assigned_to_agent_id == ctx.agent_id,
        )
    if ctx.role in (Role.ADMIN, Role.TEAM_LEAD):
        return Deal.organization_id == ctx.organization_id
    raise ValueError(f"Unhandled role: {ctx.role!r}")


def visible_deals(db: Session, ctx: RequestContext) -> Query:
    return db.query(Deal).filter(deal_visibility_predicate(ctx))


def get_visible_deal(db: Session, ctx: RequestContext, deal_id: uuid.UUID) -> Deal:
    """
    Fetch one deal for the caller.

    404 when the deal does not exist inside the caller's organization, so
    other tenants' ids are never confirmed. 403 when it exists in the
    organization but an Employee is not its assignee.
    """
    deal = db.query(Deal).filter(
        Deal.id == deal_id,
        Deal.organization_id == ctx.organization_id,
    ).first()
    if deal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deal not found")
    if ctx.role == Role.EMPLOYEE and deal.assigned_to_agent_id != ctx.agent_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this deal")
    return deal
