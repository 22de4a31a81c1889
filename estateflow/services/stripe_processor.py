"""
Applies Stripe webhook events to organization subscription state.

Handles:
- checkout.session.completed -> link subscription/customer, mark Active
- invoice.paid -> mark Active
- invoice.payment_failed -> log only
- customer.subscription.deleted -> mark Cancelled
- customer.subscription.updated -> map remote status
"""
import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.organization_member import OrganizationMember, Role

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIAL,
    "past_due": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "unpaid": SubscriptionStatus.EXPIRED,
}


def map_subscription_status(remote_status: Optional[str]) -> Optional[SubscriptionStatus]:
    """Local status for a Stripe subscription status, or None for ones we don't track."""
    return _STATUS_MAP.get((remote_status or "").lower())


def _org_by_customer(db: Session, customer_id: Optional[str]) -> Optional[Organization]:
    if not customer_id:
        return None
    return db.query(Organization).filter(Organization.stripe_customer_id == customer_id).first()


def _org_administered_by(db: Session, agent_id: Optional[str]) -> Optional[Organization]:
    try:
        agent_uuid = uuid.UUID(str(agent_id))
    except (ValueError, TypeError):
        return None
    return (
        db.query(Organization)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .filter(OrganizationMember.agent_id == agent_uuid, OrganizationMember.role == Role.ADMIN)
        .first()
    )


def process_stripe_event(db: Session, event: Dict[str, Any]) -> bool:
    """Apply one verified event. Returns True when it changed local state."""
    event_type = event.get("type")
    data = event.get("data", {}).get("object", {}) or {}
    logger.info("[WEBHOOK] Processing %s (%s)", event_type, event.get("id"))

    if event_type == "checkout.session.completed":
        metadata = data.get("metadata") or {}
        org = _org_administered_by(db, metadata.get("agent_id"))
        if org is None:
            logger.warning("[WEBHOOK] checkout.session.completed without a matching admin org")
            return False
        org.subscription_status = SubscriptionStatus.ACTIVE
        org.stripe_subscription_id = data.get("subscription") or org.stripe_subscription_id
        org.stripe_customer_id = data.get("customer") or org.stripe_customer_id
        db.commit()
        return True

    if event_type == "invoice.paid":
        org = _org_by_customer(db, data.get("customer"))
        if org is None:
            return False
        org.subscription_status = SubscriptionStatus.ACTIVE
        db.commit()
        return True

    if event_type == "invoice.payment_failed":
        logger.warning("[WEBHOOK] Payment failed for customer %s", data.get("customer"))
        return False

    if event_type == "customer.subscription.deleted":
        org = _org_by_customer(db, data.get("customer"))
        if org is None:
            return False
        org.subscription_status = SubscriptionStatus.CANCELLED
        db.commit()
        return True

    if event_type == "customer.subscription.updated":
        org = _org_by_customer(db, data.get("customer"))
        if org is None:
            return False
        status = map_subscription_status(data.get("status"))
        if status is not None:
            org.subscription_status = status
        org.stripe_subscription_id = data.get("id") or org.stripe_subscription_id
        db.commit()
        return True

    logger.info("[WEBHOOK] Ignoring unhandled event type %s", event_type)
    return False
