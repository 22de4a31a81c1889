from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid
import enum
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.utils.clock import utcnow


class DealStatus(str, enum.Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"


class Deal(Base):
    """
    A client transaction. organization_id never changes after creation;
    assigned_to_agent_id drives visibility for Employees.
    agent_id is the legacy single-tenant owner, read only by the backfill.
    """
    __tablename__ = "deals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    agent_id = Column(Uuid(as_uuid=True), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True)
    # Null only for legacy rows the backfill has not stamped yet.
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    assigned_to_agent_id = Column(Uuid(as_uuid=True), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_agent_id = Column(Uuid(as_uuid=True), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=False)
    property_address = Column(String(500), nullable=True)
    property_photo_url = Column(String(500), nullable=True)
    welcome_message = Column(Text, nullable=True)
    status = Column(enum_column(DealStatus), nullable=False, default=DealStatus.ACTIVE, index=True)
    access_token = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    # Stamped explicitly by deal-level writes; the dashboard reads it as the completion date
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    steps = relationship(
        "TimelineStep",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="TimelineStep.order",
    )
    documents = relationship(
        "Document",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="Document.uploaded_at",
    )
    assigned_to = relationship("Agent", foreign_keys=[assigned_to_agent_id])

    @property
    def display_name(self) -> str:
        return self.property_address or self.client_name
