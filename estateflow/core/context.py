"""
Request context: who is calling, in which organization, with which role.

Resolved once per request from verified token claims and passed explicitly
into every service call. Nothing here touches the database.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from estateflow.models.organization_member import Role

EMPTY_ID = uuid.UUID(int=0)


@dataclass(frozen=True, slots=True)
class RequestContext:
    agent_id: uuid.UUID
    organization_id: uuid.UUID
    role: Role

    @property
    def has_identity(self) -> bool:
        return self.agent_id != EMPTY_ID

    @property
    def has_organization(self) -> bool:
        return self.organization_id != EMPTY_ID

    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def is_team_lead_or_above(self) -> bool:
        return self.role in (Role.ADMIN, Role.TEAM_LEAD)


def _parse_id(value: Any) -> uuid.UUID:
    if not value:
        return EMPTY_ID
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return EMPTY_ID


def resolve_request_context(claims: Optional[Mapping[str, Any]]) -> RequestContext:
    """
    Build a RequestContext from token claims.

    Missing or malformed claims fall back to an empty id and the Employee
    role; callers treat an empty id as "no access".
    """
    claims = claims or {}
    return RequestContext(
        agent_id=_parse_id(claims.get("sub")),
        organization_id=_parse_id(claims.get("org_id")),
        role=Role.parse(claims.get("role")),
    )
