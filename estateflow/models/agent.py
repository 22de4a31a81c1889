from sqlalchemy import Column, String, DateTime, JSON, Uuid
import uuid
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.models.organization import SubscriptionStatus
from estateflow.utils.clock import utcnow


class Agent(Base):
    """
    A person who logs in. Billing fields are the pre-organization
    single-tenant ones, kept so the legacy backfill can copy them.
    """
    __tablename__ = "agents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    photo_url = Column(String(500), nullable=True)
    brand_color = Column(String(7), nullable=False, default="#1a1a2e")
    logo_url = Column(String(500), nullable=True)
    social_links = Column(JSON, nullable=True)
    subscription_status = Column(enum_column(SubscriptionStatus), nullable=False, default=SubscriptionStatus.TRIAL)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
