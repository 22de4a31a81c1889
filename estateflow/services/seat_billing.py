"""
Keeps the per-seat line item of an organization's Stripe subscription in
step with its membership.

add_seat() reports failure so the caller can refuse to grow the team without
billing it. remove_seat() never fails: local cleanup must not depend on
Stripe being reachable.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from estateflow.core.config import Settings
from estateflow.models.agent import Agent
from estateflow.models.organization import Organization
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.services.stripe_gateway import StripeBillingGateway

logger = logging.getLogger(__name__)


@dataclass
class SeatBillingReconciler:
    db: Session
    settings: Settings
    gateway: StripeBillingGateway

    def add_seat(self, org: Organization) -> bool:
        if not self.settings.seat_billing_configured:
            return True

        try:
            subscription_id = self._ensure_subscription(org)
        except stripe.StripeError as e:
            logger.error("[SEATS] Subscription lookup failed for org %s: %s", org.id, e)
            return False
        if subscription_id is None:
            # Nothing to bill against yet
            return True

        try:
            subscription = self.gateway.retrieve_subscription(subscription_id)
            seat_item = self._find_seat_item(subscription)
            if seat_item is not None:
                quantity = (seat_item.get("quantity") or 0) + 1
                self.gateway.set_item_quantity(seat_item["id"], quantity)
                org.stripe_seat_item_id = seat_item["id"]
            else:
                quantity = 1
                new_item = self.gateway.create_item(subscription_id, self.settings.STRIPE_PRICE_SEAT, quantity=1)
                org.stripe_seat_item_id = new_item["id"]
        except stripe.StripeError as e:
            logger.error("[SEATS] Failed to add seat for org %s: %s", org.id, e)
            return False

        self.db.flush()
        logger.info("[SEATS] Org %s seat quantity is now %s", org.id, quantity)
        return True

    def remove_seat(self, org: Organization) -> None:
        if not self.settings.seat_billing_configured:
            return

        try:
            subscription_id = self._ensure_subscription(org)
            if subscription_id is None:
                return

            subscription = self.gateway.retrieve_subscription(subscription_id)
            seat_item = self._find_seat_item(subscription)
            if seat_item is None or (seat_item.get("quantity") or 0) <= 0:
                return

            quantity = seat_item["quantity"]
            if quantity <= 1:
                self.gateway.delete_item(seat_item["id"])
                org.stripe_seat_item_id = None
                logger.info("[SEATS] Org %s seat item removed", org.id)
            else:
                self.gateway.set_item_quantity(seat_item["id"], quantity - 1)
                logger.info("[SEATS] Org %s seat quantity is now %s", org.id, quantity - 1)
        except stripe.StripeError as e:
            logger.warning("[SEATS] Failed to remove seat for org %s, continuing: %s", org.id, e)
            return

        self.db.flush()

    def _ensure_subscription(self, org: Organization) -> Optional[str]:
        """
        Return the org's subscription id, discovering it from the Admin's
        Stripe customer when the org was never linked.
        """
        if org.stripe_subscription_id:
            return org.stripe_subscription_id

        customer_id = org.stripe_customer_id or self._admin_customer_id(org)
        if not customer_id:
            return None

        subscription = self.gateway.latest_subscription(customer_id)
        if subscription is None:
            return None

        org.stripe_subscription_id = subscription["id"]
        org.stripe_customer_id = customer_id
        self.db.flush()
        logger.info("[SEATS] Linked org %s to subscription %s", org.id, subscription["id"])
        return org.stripe_subscription_id

    def _admin_customer_id(self, org: Organization) -> Optional[str]:
        admin = (
            self.db.query(Agent)
            .join(OrganizationMember, OrganizationMember.agent_id == Agent.id)
            .filter(
                OrganizationMember.organization_id == org.id,
                OrganizationMember.role == Role.ADMIN,
            )
            .first()
        )
        return admin.stripe_customer_id if admin else None

    def _find_seat_item(self, subscription: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for item in subscription["items"]["data"]:
            if item["price"]["id"] == self.settings.STRIPE_PRICE_SEAT:
                return item
        return None
