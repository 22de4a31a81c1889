from sqlalchemy import Column, String, Text, Date, DateTime, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid
import enum
from estateflow.db.session import Base
from estateflow.db.types import enum_column

DEFAULT_EXPECTED_DURATION_DAYS = 7
DEFAULT_INACTIVITY_WARNING_DAYS = 5
DEFAULT_INACTIVITY_CRITICAL_DAYS = 10


class StepStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class TimelineStep(Base):
    __tablename__ = "timeline_steps"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(Uuid(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(enum_column(StepStatus), nullable=False, default=StepStatus.PENDING)
    due_date = Column(Date, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    order = Column(Integer, nullable=False, default=0)

    # Alert thresholds, copied from the template when the deal is created
    expected_duration_days = Column(Integer, nullable=False, default=DEFAULT_EXPECTED_DURATION_DAYS)
    inactivity_warning_days = Column(Integer, nullable=False, default=DEFAULT_INACTIVITY_WARNING_DAYS)
    inactivity_critical_days = Column(Integer, nullable=False, default=DEFAULT_INACTIVITY_CRITICAL_DAYS)
    started_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)

    deal = relationship("Deal", back_populates="steps")
