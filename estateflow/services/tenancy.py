from sqlalchemy.orm import Session

from estateflow.models.agent import Agent
from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.utils.clock import utcnow


def personal_organization_name(agent: Agent) -> str:
    return f"{agent.full_name or agent.email}'s Agency"


def provision_personal_organization(db: Session, agent: Agent, copy_billing: bool = False) -> OrganizationMember:
    """
    Create a one-agent organization with the agent as Admin.

    copy_billing carries the agent's legacy brand and Stripe fields across,
    which only the backfill of pre-organization accounts wants.
    """
    org = Organization(name=personal_organization_name(agent))
    joined_at = utcnow()
    if copy_billing:
        org.brand_color = agent.brand_color or "#1a1a2e"
        org.logo_url = agent.logo_url
        org.subscription_status = agent.subscription_status or SubscriptionStatus.TRIAL
        org.stripe_customer_id = agent.stripe_customer_id
        org.stripe_subscription_id = agent.stripe_subscription_id
        org.created_at = agent.created_at
        joined_at = agent.created_at
    db.add(org)
    db.flush()

    membership = OrganizationMember(
        organization_id=org.id,
        agent_id=agent.id,
        role=Role.ADMIN,
        joined_at=joined_at,
    )
    db.add(membership)
    db.flush()
    return membership
