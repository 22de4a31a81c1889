"""
Passwordless login through single-use magic links.
"""
import logging
import uuid
from datetime import timedelta
from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from estateflow.core.config import Settings
from estateflow.core.security import create_access_token, generate_secure_token
from estateflow.models.agent import Agent
from estateflow.models.magic_link import MagicLink
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.services.email import EmailService
from estateflow.services.tenancy import provision_personal_organization
from estateflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

LOGIN_MESSAGE = "If this email is valid, you will receive a login link shortly."
INVALID_TOKEN = "Invalid or expired token"


def create_agent_token(
    settings: Settings,
    agent: Agent,
    organization_id: Optional[uuid.UUID],
    role: Optional[Role],
) -> str:
    claims = {"sub": str(agent.id), "email": agent.email}
    if organization_id is not None:
        claims["org_id"] = str(organization_id)
    if role is not None:
        claims["role"] = role.value
    return create_access_token(claims, settings)


def primary_membership(db: Session, agent_id: uuid.UUID) -> Optional[OrganizationMember]:
    """The membership a fresh login lands in: the org the agent administers, else the oldest."""
    memberships = (
        db.query(OrganizationMember)
        .filter(OrganizationMember.agent_id == agent_id)
        .order_by(OrganizationMember.joined_at.asc())
        .all()
    )
    for membership in memberships:
        if membership.role == Role.ADMIN:
            return membership
    return memberships[0] if memberships else None


class AuthService:
    def __init__(self, db: Session, settings: Settings, email: EmailService):
        self.db = db
        self.settings = settings
        self.email = email

    def request_magic_link(self, email: str) -> str:
        """
        Find or create the agent and mail a login link.
        The response is identical whether or not the address was known.
        """
        normalized_email = email.strip().lower()
        if not normalized_email:
            return LOGIN_MESSAGE

        agent = self.db.query(Agent).filter(Agent.email == normalized_email).first()
        if agent is None:
            agent = Agent(email=normalized_email)
            self.db.add(agent)
            self.db.flush()
            logger.info("[AUTH] Created agent %s on first login request", agent.id)

        link = MagicLink(
            agent_id=agent.id,
            token=generate_secure_token(),
            expires_at=utcnow() + timedelta(minutes=self.settings.MAGIC_LINK_EXPIRE_MINUTES),
        )
        self.db.add(link)
        self.db.commit()

        self.email.send_magic_link(agent.email, link.token)
        return LOGIN_MESSAGE

    def verify_magic_link(self, token: str) -> Tuple[str, Agent]:
        """Consume a magic link and return (jwt, agent). Any failure is the same 401."""
        token = (token or "").strip()
        now = utcnow()
        link = None
        if token:
            link = self.db.query(MagicLink).filter(
                MagicLink.token == token,
                MagicLink.used_at.is_(None),
                MagicLink.expires_at > now,
            ).first()
        if link is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_TOKEN)

        agent = self.db.query(Agent).filter(Agent.id == link.agent_id).first()
        if agent is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_TOKEN)

        link.used_at = now
        membership = primary_membership(self.db, agent.id)
        if membership is None:
            membership = provision_personal_organization(self.db, agent)
            logger.info("[AUTH] Provisioned organization %s for agent %s", membership.organization_id, agent.id)
        self.db.commit()

        jwt_token = create_agent_token(self.settings, agent, membership.organization_id, membership.role)
        return jwt_token, agent
