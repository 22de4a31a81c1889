from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
import uuid
from estateflow.db.session import Base
from estateflow.utils.clock import utcnow


class MagicLink(Base):
    __tablename__ = "magic_links"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    agent_id = Column(Uuid(as_uuid=True), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
