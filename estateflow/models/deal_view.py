from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
import uuid
import enum
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.utils.clock import utcnow


class ViewType(str, enum.Enum):
    PAGE_VIEW = "PageView"
    DOCUMENT_DOWNLOAD = "DocumentDownload"


class DealView(Base):
    """One hit on the public client portal."""
    __tablename__ = "deal_views"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(Uuid(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    view_type = Column(enum_column(ViewType), nullable=False)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(45), nullable=True)
    viewed_at = Column(DateTime, default=utcnow, nullable=False, index=True)
