import uuid

import pytest

from estateflow.core.context import EMPTY_ID, RequestContext, resolve_request_context
from estateflow.models.organization_member import Role


def test_resolves_claims():
    agent_id, org_id = uuid.uuid4(), uuid.uuid4()
    ctx = resolve_request_context({"sub": str(agent_id), "org_id": str(org_id), "role": "TeamLead"})
    assert ctx == RequestContext(agent_id=agent_id, organization_id=org_id, role=Role.TEAM_LEAD)
    assert ctx.has_identity and ctx.has_organization
    assert ctx.is_team_lead_or_above() and not ctx.is_admin()


@pytest.mark.parametrize("claims", [None, {}, {"sub": "not-a-uuid", "org_id": 42}])
def test_missing_or_malformed_claims_fall_back_to_empty(claims):
    ctx = resolve_request_context(claims)
    assert ctx.agent_id == EMPTY_ID
    assert ctx.organization_id == EMPTY_ID
    assert ctx.role == Role.EMPLOYEE
    assert not ctx.has_identity and not ctx.has_organization


@pytest.mark.parametrize("raw, expected", [
    ("admin", Role.ADMIN),
    ("TEAMLEAD", Role.TEAM_LEAD),
    (" Employee ", Role.EMPLOYEE),
    ("Owner", Role.EMPLOYEE),
    (None, Role.EMPLOYEE),
])
def test_role_claim_is_parsed_leniently(raw, expected):
    ctx = resolve_request_context({"sub": str(uuid.uuid4()), "role": raw})
    assert ctx.role == expected


def test_role_input_is_strict():
    assert Role.from_input("teamlead") == Role.TEAM_LEAD
    with pytest.raises(ValueError):
        Role.from_input("Owner")
    with pytest.raises(ValueError):
        Role.from_input(None)


def test_context_is_immutable():
    ctx = resolve_request_context({"sub": str(uuid.uuid4())})
    with pytest.raises(AttributeError):
        ctx.role = Role.ADMIN
