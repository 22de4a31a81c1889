"""
Organization subscription: hosted checkout and portal, status readout, manual
sync and the Stripe webhook. Only the organization admin manages billing.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from estateflow.api.deps import get_billing_gateway, require_admin, require_org_context
from estateflow.core.config import Settings, get_settings
from estateflow.core.context import RequestContext
from estateflow.db.session import get_db
from estateflow.models.agent import Agent
from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.schemas.stripe import CheckoutRequest, RedirectResponse, SubscriptionInfo, SyncResponse
from estateflow.services.stripe_gateway import StripeBillingGateway
from estateflow.services.stripe_processor import map_subscription_status, process_stripe_event
from estateflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

BASE_PRICE_MONTHLY = 49.0
BASE_PRICE_YEARLY = 470.0
SEAT_UNIT_PRICE = 10.0


def _require_stripe(settings: Settings) -> None:
    if not settings.stripe_configured:
        raise HTTPException(status_code=400, detail="Stripe not configured")


def _get_org(db: Session, ctx: RequestContext) -> Organization:
    org = db.query(Organization).filter(Organization.id == ctx.organization_id).first()
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def _get_agent(db: Session, ctx: RequestContext) -> Agent:
    agent = db.query(Agent).filter(Agent.id == ctx.agent_id).first()
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


def summarize_subscription(subscription: Dict[str, Any], settings: Settings,
                           local_status: SubscriptionStatus) -> SubscriptionInfo:
    """Plan, seat count and monthly total from the subscription's line items."""
    plan = None
    base_price = BASE_PRICE_MONTHLY
    seat_count = 0
    seat_unit_price = SEAT_UNIT_PRICE

    for item in subscription["items"]["data"]:
        price = item.get("price") or {}
        price_id = price.get("id")
        if price_id and price_id == settings.STRIPE_PRICE_MONTHLY:
            plan = "monthly"
            base_price = BASE_PRICE_MONTHLY
        elif price_id and price_id == settings.STRIPE_PRICE_YEARLY:
            plan = "yearly"
            base_price = round(BASE_PRICE_YEARLY / 12, 2)
        elif price_id and price_id == settings.STRIPE_PRICE_SEAT:
            seat_count = item.get("quantity") or 0
            if price.get("unit_amount") is not None:
                seat_unit_price = price["unit_amount"] / 100

    return SubscriptionInfo(
        status=local_status,
        stripe_status=subscription.get("status"),
        plan=plan,
        current_period_end=subscription.get("current_period_end"),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
        seat_count=seat_count,
        seat_unit_price=seat_unit_price,
        base_price=base_price,
        total_monthly=round(base_price + seat_count * seat_unit_price, 2),
    )


@router.post("/checkout", response_model=RedirectResponse)
def create_checkout_session(
    body: CheckoutRequest,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: StripeBillingGateway = Depends(get_billing_gateway),
):
    _require_stripe(settings)
    plan = (body.plan or "monthly").lower()
    price_id = settings.STRIPE_PRICE_YEARLY if plan == "yearly" else settings.STRIPE_PRICE_MONTHLY
    if not price_id:
        raise HTTPException(status_code=400, detail="Price not configured for selected plan")

    org = _get_org(db, ctx)
    agent = _get_agent(db, ctx)

    try:
        customer_id = org.stripe_customer_id or agent.stripe_customer_id
        if not customer_id or not gateway.customer_exists(customer_id):
            customer = gateway.create_customer(
                email=agent.email,
                name=org.name,
                metadata={"agent_id": str(agent.id), "organization_id": str(org.id)},
            )
            customer_id = customer["id"]
        org.stripe_customer_id = customer_id
        agent.stripe_customer_id = agent.stripe_customer_id or customer_id
        db.commit()

        session = gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=f"{settings.FRONTEND_URL}/dashboard?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.FRONTEND_URL}/dashboard/subscription",
            metadata={"agent_id": str(agent.id), "organization_id": str(org.id), "plan": plan},
        )
    except stripe.StripeError as e:
        logger.error("[STRIPE] Checkout failed for org %s: %s", org.id, e)
        raise HTTPException(status_code=400, detail="Failed to create checkout session")

    return RedirectResponse(url=session["url"])


@router.get("/subscription", response_model=SubscriptionInfo)
def get_subscription(
    ctx: RequestContext = Depends(require_org_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: StripeBillingGateway = Depends(get_billing_gateway),
):
    org = _get_org(db, ctx)
    if org.stripe_subscription_id and settings.stripe_configured:
        try:
            subscription = gateway.retrieve_subscription(org.stripe_subscription_id)
            return summarize_subscription(subscription, settings, org.subscription_status)
        except stripe.StripeError as e:
            logger.error("[STRIPE] Could not fetch subscription %s: %s", org.stripe_subscription_id, e)
    return SubscriptionInfo(status=org.subscription_status)


@router.post("/portal", response_model=RedirectResponse)
def create_portal_session(
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: StripeBillingGateway = Depends(get_billing_gateway),
):
    _require_stripe(settings)
    org = _get_org(db, ctx)
    if not org.stripe_customer_id:
        raise HTTPException(status_code=400, detail="No subscription found")
    try:
        session = gateway.create_portal_session(
            customer_id=org.stripe_customer_id,
            return_url=f"{settings.FRONTEND_URL}/dashboard/subscription",
        )
    except stripe.StripeError as e:
        logger.error("[STRIPE] Portal session failed for org %s: %s", org.id, e)
        raise HTTPException(status_code=400, detail="Failed to create portal session")
    return RedirectResponse(url=session["url"])


@router.post("/sync", response_model=SyncResponse)
def sync_subscription(
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: StripeBillingGateway = Depends(get_billing_gateway),
):
    """Pull the latest subscription for the org's customer, for when a webhook was missed."""
    _require_stripe(settings)
    org = _get_org(db, ctx)
    if not org.stripe_customer_id:
        return SyncResponse(message="No Stripe customer found", status=org.subscription_status)

    try:
        subscription = gateway.latest_subscription(org.stripe_customer_id)
    except stripe.StripeError as e:
        logger.error("[STRIPE] Sync failed for org %s: %s", org.id, e)
        raise HTTPException(status_code=400, detail="Failed to sync subscription")

    if subscription is None:
        return SyncResponse(message="No active subscription found", status=org.subscription_status)

    org.stripe_subscription_id = subscription["id"]
    org.subscription_status = map_subscription_status(subscription.get("status")) or org.subscription_status
    org.updated_at = utcnow()
    db.commit()
    logger.info("[STRIPE] Org %s subscription synced: %s", org.id, subscription.get("status"))
    return SyncResponse(
        message="Subscription synced",
        status=org.subscription_status,
        stripe_status=subscription.get("status"),
    )


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """Verify the signature, then apply the event to organization state."""
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=400, detail="Webhook secret not configured")

    payload = await request.body()
    try:
        stripe.Webhook.construct_event(payload, stripe_signature or "", settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.warning("[WEBHOOK] Invalid payload: %s", e)
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError as e:
        logger.warning("[WEBHOOK] Signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail="Invalid signature")

    process_stripe_event(db, json.loads(payload))
    return {"received": True}
