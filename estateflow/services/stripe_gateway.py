"""
Thin wrapper around the Stripe SDK for the calls this service makes.

Every call passes the api key explicitly instead of mutating stripe.api_key,
so the gateway can be built per request from injected settings.
"""
import logging
from typing import Any, Dict, Optional

import stripe

logger = logging.getLogger(__name__)


class StripeBillingGateway:
    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    # Subscriptions

    def latest_subscription(self, customer_id: str) -> Optional[Dict[str, Any]]:
        result = stripe.Subscription.list(customer=customer_id, limit=1, api_key=self.api_key)
        data = result["data"]
        return data[0] if data else None

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)

    def set_item_quantity(self, item_id: str, quantity: int) -> Dict[str, Any]:
        return stripe.SubscriptionItem.modify(item_id, quantity=quantity, api_key=self.api_key)

    def create_item(self, subscription_id: str, price_id: str, quantity: int = 1) -> Dict[str, Any]:
        return stripe.SubscriptionItem.create(
            subscription=subscription_id,
            price=price_id,
            quantity=quantity,
            api_key=self.api_key,
        )

    def delete_item(self, item_id: str) -> None:
        stripe.SubscriptionItem.delete(item_id, api_key=self.api_key)

    # Customers and hosted pages

    def create_customer(self, email: str, name: Optional[str], metadata: Dict[str, str]) -> Dict[str, Any]:
        return stripe.Customer.create(email=email, name=name, metadata=metadata, api_key=self.api_key)

    def customer_exists(self, customer_id: str) -> bool:
        try:
            customer = stripe.Customer.retrieve(customer_id, api_key=self.api_key)
        except stripe.InvalidRequestError:
            return False
        return not customer.get("deleted", False)

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        return stripe.checkout.Session.create(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            api_key=self.api_key,
        )

    def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, Any]:
        return stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url, api_key=self.api_key)
