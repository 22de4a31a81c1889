"""
Organization membership lifecycle: invitations, role changes, removal and
admin transfer.

Invitations are pending until accepted; expiry is only ever derived from
expires_at at read time. Every mutating operation here is Admin-only except
accepting an invitation, which is authorized by the invitation token.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from estateflow.core.config import Settings
from estateflow.core.context import RequestContext
from estateflow.core.security import generate_secure_token
from estateflow.models.agent import Agent
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.invitation import Invitation
from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.services.auth import create_agent_token
from estateflow.services.email import INVITATION_EXPIRES_DAYS, EmailService
from estateflow.services.seat_billing import SeatBillingReconciler
from estateflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

INVALID_INVITATION = "Invalid or expired invitation"


@dataclass
class MemberSummary:
    agent: Agent
    membership: OrganizationMember
    active_deals: int


@dataclass
class MembershipService:
    db: Session
    settings: Settings
    seats: SeatBillingReconciler
    email: EmailService

    # Guards

    def _get_org(self, ctx: RequestContext) -> Organization:
        org = self.db.query(Organization).filter(Organization.id == ctx.organization_id).first()
        if org is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
        return org

    def _require_admin(self, ctx: RequestContext) -> OrganizationMember:
        """
        The token claim and the stored membership must both say Admin, so a
        token issued before an admin transfer stops working for admin actions.
        """
        membership = None
        if ctx.is_admin() and ctx.has_identity:
            membership = self._membership(ctx.organization_id, ctx.agent_id)
        if membership is None or membership.role != Role.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can perform this action")
        return membership

    def _membership(self, organization_id: uuid.UUID, agent_id: uuid.UUID) -> Optional[OrganizationMember]:
        return self.db.query(OrganizationMember).filter(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.agent_id == agent_id,
        ).first()

    def _pending_invitations(self, organization_id: uuid.UUID):
        return self.db.query(Invitation).filter(
            Invitation.organization_id == organization_id,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > utcnow(),
        )

    # Members

    def list_members(self, ctx: RequestContext) -> List[MemberSummary]:
        rows = (
            self.db.query(OrganizationMember, Agent)
            .join(Agent, Agent.id == OrganizationMember.agent_id)
            .filter(OrganizationMember.organization_id == ctx.organization_id)
            .order_by(OrganizationMember.joined_at.asc())
            .all()
        )
        active_counts = dict(
            self.db.query(Deal.assigned_to_agent_id, func.count(Deal.id))
            .filter(Deal.organization_id == ctx.organization_id, Deal.status == DealStatus.ACTIVE)
            .group_by(Deal.assigned_to_agent_id)
            .all()
        )
        return [
            MemberSummary(agent=agent, membership=membership, active_deals=active_counts.get(agent.id, 0))
            for membership, agent in rows
        ]

    def change_member_role(self, ctx: RequestContext, agent_id: uuid.UUID, new_role: str) -> OrganizationMember:
        self._require_admin(ctx)
        if agent_id == ctx.agent_id:
            raise HTTPException(status_code=400, detail="Cannot change your own role")

        member = self._membership(ctx.organization_id, agent_id)
        if member is None:
            raise HTTPException(status_code=404, detail="Member not found")
        if member.role == Role.ADMIN:
            raise HTTPException(status_code=400, detail="Cannot change admin role. Use transfer-admin instead.")

        try:
            role = Role.from_input(new_role)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid role")
        if role == Role.ADMIN:
            raise HTTPException(status_code=400, detail="Cannot promote to admin. Use transfer-admin instead.")

        member.role = role
        self.db.commit()
        logger.info("[MEMBERS] Org %s: agent %s is now %s", ctx.organization_id, agent_id, role.value)
        return member

    def remove_member(self, ctx: RequestContext, agent_id: uuid.UUID) -> None:
        admin = self._require_admin(ctx)
        if agent_id == ctx.agent_id:
            raise HTTPException(status_code=400, detail="Cannot remove yourself from the organization")

        member = self._membership(ctx.organization_id, agent_id)
        if member is None:
            raise HTTPException(status_code=404, detail="Member not found")
        if member.role == Role.ADMIN:
            raise HTTPException(status_code=400, detail="Cannot remove the admin")

        # Hand every deal over to the admin before the membership disappears
        now = utcnow()
        reassigned = (
            self.db.query(Deal)
            .filter(Deal.organization_id == ctx.organization_id, Deal.assigned_to_agent_id == agent_id)
            .update(
                {Deal.assigned_to_agent_id: admin.agent_id, Deal.updated_at: now},
                synchronize_session="fetch",
            )
        )

        org = self._get_org(ctx)
        self.seats.remove_seat(org)

        self.db.delete(member)
        self.db.commit()
        logger.info(
            "[MEMBERS] Org %s: removed agent %s, reassigned %s deal(s) to %s",
            ctx.organization_id, agent_id, reassigned, admin.agent_id,
        )

    def transfer_admin(self, ctx: RequestContext, target_agent_id: uuid.UUID) -> None:
        current = self._require_admin(ctx)
        if target_agent_id == ctx.agent_id:
            raise HTTPException(status_code=400, detail="Already admin")

        target = self._membership(ctx.organization_id, target_agent_id)
        if target is None:
            raise HTTPException(status_code=404, detail="Member not found")
        if target.role == Role.ADMIN:
            raise HTTPException(status_code=400, detail="Already admin")

        current.role = Role.TEAM_LEAD
        target.role = Role.ADMIN
        self.db.commit()
        logger.info("[MEMBERS] Org %s: admin transferred from %s to %s", ctx.organization_id, ctx.agent_id, target_agent_id)

    # Invitations

    def list_invitations(self, ctx: RequestContext) -> List[Invitation]:
        self._require_admin(ctx)
        return self._pending_invitations(ctx.organization_id).order_by(Invitation.created_at.desc()).all()

    def create_invitation(self, ctx: RequestContext, email: str, role: str) -> Invitation:
        self._require_admin(ctx)
        org = self._get_org(ctx)

        email = (email or "").strip().lower()
        if not email:
            raise HTTPException(status_code=400, detail="Email is required")

        already_member = (
            self.db.query(OrganizationMember)
            .join(Agent, Agent.id == OrganizationMember.agent_id)
            .filter(OrganizationMember.organization_id == org.id, Agent.email == email)
            .first()
        )
        if already_member:
            raise HTTPException(status_code=400, detail="This email is already a member of your organization")

        if self._pending_invitations(org.id).filter(Invitation.email == email).first():
            raise HTTPException(status_code=400, detail="An invitation is already pending for this email")

        try:
            invite_role = Role.from_input(role)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid role")
        if invite_role == Role.ADMIN:
            raise HTTPException(status_code=400, detail="Cannot invite as admin")

        if org.subscription_status != SubscriptionStatus.ACTIVE:
            raise HTTPException(status_code=400, detail="Subscription required to invite team members")

        # Billing gates the invitation: no seat, no invite
        if not self.seats.add_seat(org):
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Failed to add seat to subscription")

        invitation = Invitation(
            organization_id=org.id,
            email=email,
            role=invite_role,
            token=generate_secure_token(),
            expires_at=utcnow() + timedelta(days=INVITATION_EXPIRES_DAYS),
        )
        self.db.add(invitation)
        self.db.commit()
        self.db.refresh(invitation)

        inviter = self.db.query(Agent).filter(Agent.id == ctx.agent_id).first()
        self.email.send_invitation(
            to_email=email,
            org_name=org.name,
            role=invite_role.value,
            token=invitation.token,
            inviter_name=inviter.display_name if inviter else None,
        )
        logger.info("[INVITES] Org %s invited %s as %s", org.id, email, invite_role.value)
        return invitation

    def cancel_invitation(self, ctx: RequestContext, invitation_id: uuid.UUID) -> None:
        self._require_admin(ctx)
        invitation = self.db.query(Invitation).filter(
            Invitation.id == invitation_id,
            Invitation.organization_id == ctx.organization_id,
        ).first()
        if invitation is None:
            raise HTTPException(status_code=404, detail="Invitation not found")
        if invitation.accepted_at is not None:
            raise HTTPException(status_code=400, detail="Invitation already accepted")

        org = self._get_org(ctx)
        self.seats.remove_seat(org)

        self.db.delete(invitation)
        self.db.commit()
        logger.info("[INVITES] Org %s cancelled invitation %s", org.id, invitation_id)

    def get_pending_invitation(self, token: str) -> Tuple[Invitation, Organization]:
        token = (token or "").strip()
        row = None
        if token:
            row = (
                self.db.query(Invitation, Organization)
                .join(Organization, Organization.id == Invitation.organization_id)
                .filter(
                    Invitation.token == token,
                    Invitation.accepted_at.is_(None),
                    Invitation.expires_at > utcnow(),
                )
                .first()
            )
        if row is None:
            raise HTTPException(status_code=404, detail=INVALID_INVITATION)
        return row[0], row[1]

    def accept_invitation(self, token: str, full_name: Optional[str]) -> Tuple[str, bool]:
        """Accept an invitation; returns (jwt for the new org, whether the agent was created)."""
        invitation, org = self.get_pending_invitation(token)

        agent = self.db.query(Agent).filter(Agent.email == invitation.email).first()
        is_new_user = agent is None
        if agent is None:
            if not full_name or not full_name.strip():
                raise HTTPException(status_code=400, detail="Full name is required for new users")
            agent = Agent(email=invitation.email, full_name=full_name.strip())
            self.db.add(agent)
            self.db.flush()

        if self._membership(org.id, agent.id) is not None:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Already a member of this organization")

        now = utcnow()
        self.db.add(OrganizationMember(
            organization_id=org.id,
            agent_id=agent.id,
            role=invitation.role,
            joined_at=now,
        ))
        invitation.accepted_at = now
        self.db.commit()
        logger.info("[INVITES] %s joined org %s as %s", agent.email, org.id, invitation.role.value)

        jwt_token = create_agent_token(self.settings, agent, org.id, invitation.role)
        return jwt_token, is_new_user

    # Organization profile

    def update_organization(self, ctx: RequestContext, changes: dict) -> Organization:
        self._require_admin(ctx)
        org = self._get_org(ctx)
        for field in ("name", "brand_color", "logo_url"):
            if field not in changes:
                continue
            value = changes[field]
            if field != "logo_url" and not (value or "").strip():
                continue
            setattr(org, field, value.strip() if isinstance(value, str) else value)
        self.db.commit()
        self.db.refresh(org)
        return org
