from sqlalchemy import Column, String, DateTime, Uuid
import uuid
import enum
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.utils.clock import utcnow


class SubscriptionStatus(str, enum.Enum):
    TRIAL = "Trial"
    ACTIVE = "Active"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class Organization(Base):
    """
    Tenant boundary. Owns brand settings and the canonical billing identifiers
    (Stripe customer, subscription, and the per-seat subscription item).
    """
    __tablename__ = "organizations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    brand_color = Column(String(7), nullable=False, default="#1a1a2e")
    logo_url = Column(String(500), nullable=True)
    subscription_status = Column(enum_column(SubscriptionStatus), nullable=False, default=SubscriptionStatus.TRIAL)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    stripe_seat_item_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
