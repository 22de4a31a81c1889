from sqlalchemy import Column, ForeignKey, DateTime, Uuid
import enum
from estateflow.db.session import Base
from estateflow.db.types import enum_column
from estateflow.utils.clock import utcnow


class Role(str, enum.Enum):
    ADMIN = "Admin"
    TEAM_LEAD = "TeamLead"
    EMPLOYEE = "Employee"

    @classmethod
    def parse(cls, value) -> "Role":
        """Case-insensitive lookup; anything unknown is the least privileged role."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for role in cls:
                if role.value.lower() == normalized:
                    return role
        return cls.EMPLOYEE

    @classmethod
    def from_input(cls, value) -> "Role":
        """Strict lookup for user input; raises ValueError on unknown roles."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            for role in cls:
                if role.value.lower() == normalized:
                    return role
        raise ValueError(f"Unknown role: {value!r}")


class OrganizationMember(Base):
    """
    Agent membership in an organization. One row per (org, agent).
    Exactly one Admin per organization is enforced by the membership service.
    """
    __tablename__ = "organization_members"

    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
    agent_id = Column(Uuid(as_uuid=True), ForeignKey("agents.id", ondelete="CASCADE"), primary_key=True, index=True)
    role = Column(enum_column(Role), nullable=False, default=Role.EMPLOYEE)
    joined_at = Column(DateTime, default=utcnow, nullable=False)
