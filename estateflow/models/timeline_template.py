from sqlalchemy import Column, String, DateTime, JSON, Uuid
import uuid
from estateflow.db.session import Base
from estateflow.utils.clock import utcnow


class TimelineTemplate(Base):
    """
    Reusable list of steps. Each entry in `steps` is a dict with title,
    description, order and optional threshold overrides.
    """
    __tablename__ = "timeline_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    steps = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
