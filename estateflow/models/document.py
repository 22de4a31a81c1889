from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid
import enum
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.utils.clock import utcnow


class DocumentCategory(str, enum.Enum):
    TO_SIGN = "ToSign"
    REFERENCE = "Reference"


class Document(Base):
    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(Uuid(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    category = Column(enum_column(DocumentCategory), nullable=False, default=DocumentCategory.REFERENCE)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    # Signature workflow; only ever set on ToSign documents
    signature_request_id = Column(String(255), nullable=True)
    signature_status = Column(String(50), nullable=True)
    signed_file_path = Column(String(500), nullable=True)
    signed_at = Column(DateTime, nullable=True)

    deal = relationship("Deal", back_populates="documents")
