from pydantic import BaseModel
from typing import Optional

from estateflow.models.organization import SubscriptionStatus


class CheckoutRequest(BaseModel):
    plan: str = "monthly"  # monthly | yearly


class RedirectResponse(BaseModel):
    url: str


class SubscriptionInfo(BaseModel):
    status: SubscriptionStatus
    stripe_status: Optional[str] = None
    plan: Optional[str] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    seat_count: int = 0
    seat_unit_price: float = 10.0
    base_price: float = 49.0
    total_monthly: float = 0.0


class SyncResponse(BaseModel):
    message: str
    status: SubscriptionStatus
    stripe_status: Optional[str] = None
