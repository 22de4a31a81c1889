from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
import uuid
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.models.organization_member import Role
from estateflow.utils.clock import utcnow


class Invitation(Base):
    """
    Invitation to join an organization with a non-Admin role.
    Token is one-time use; accepted_at null means still pending.
    Expiry is derived from expires_at at read time and never written.
    """
    __tablename__ = "invitations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(enum_column(Role), nullable=False, default=Role.EMPLOYEE)
    token = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)

    def is_pending(self, now) -> bool:
        return self.accepted_at is None and self.expires_at > now
