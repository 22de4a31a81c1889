"""Magic-link auth tests"""
from datetime import timedelta

from jose import jwt
from starlette.requests import Request

from estateflow.core.rate_limit import client_ip
from estateflow.core.security import ALGORITHM, create_access_token, decode_access_token
from estateflow.models.agent import Agent
from estateflow.models.magic_link import MagicLink
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.services.auth import LOGIN_MESSAGE
from estateflow.utils.clock import utcnow


def _latest_link(db_session, email):
    agent = db_session.query(Agent).filter(Agent.email == email).first()
    return (
        db_session.query(MagicLink)
        .filter(MagicLink.agent_id == agent.id)
        .order_by(MagicLink.created_at.desc())
        .first()
    )


def test_health_endpoint(client):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_login_without_email(client):
    response = client.post("/api/auth/login", json={})
    assert response.status_code == 422  # Validation error


def test_login_with_blank_email(client):
    response = client.post("/api/auth/login", json={"email": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email is required"


def test_login_same_answer_for_known_and_unknown_email(client, make, email_outbox):
    make.agent("known@example.com", "Known Agent")

    known = client.post("/api/auth/login", json={"email": "known@example.com"})
    unknown = client.post("/api/auth/login", json={"email": "Someone.New@Example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json() == {"message": LOGIN_MESSAGE}
    assert len(email_outbox.sent_to("known@example.com")) == 1
    assert len(email_outbox.sent_to("someone.new@example.com")) == 1


def test_callback_provisions_personal_organization(client, db_session):
    client.post("/api/auth/login", json={"email": "solo@example.com"})
    link = _latest_link(db_session, "solo@example.com")

    response = client.post("/api/auth/callback", json={"token": link.token})
    assert response.status_code == 200
    body = response.json()
    assert body["agent"]["email"] == "solo@example.com"

    membership = db_session.query(OrganizationMember).filter(
        OrganizationMember.agent_id == link.agent_id
    ).one()
    assert membership.role == Role.ADMIN

    claims = jwt.get_unverified_claims(body["token"])
    assert claims["org_id"] == str(membership.organization_id)
    assert claims["role"] == "Admin"


def test_callback_lands_in_existing_membership(client, make, db_session):
    org, (employee,) = make.team(Role.EMPLOYEE)
    client.post("/api/auth/login", json={"email": employee.email})
    link = _latest_link(db_session, employee.email)

    response = client.post("/api/auth/callback", json={"token": link.token})
    claims = jwt.get_unverified_claims(response.json()["token"])
    assert claims["org_id"] == str(org.id)
    assert claims["role"] == "Employee"
    assert db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == employee.id).count() == 1


def test_magic_link_is_single_use(client, db_session):
    client.post("/api/auth/login", json={"email": "once@example.com"})
    link = _latest_link(db_session, "once@example.com")

    assert client.post("/api/auth/callback", json={"token": link.token}).status_code == 200
    replay = client.post("/api/auth/callback", json={"token": link.token})
    assert replay.status_code == 401
    assert replay.json()["detail"] == "Invalid or expired token"


def test_expired_magic_link_never_validates(client, db_session):
    client.post("/api/auth/login", json={"email": "late@example.com"})
    link = _latest_link(db_session, "late@example.com")
    link.expires_at = utcnow() - timedelta(seconds=1)
    db_session.commit()

    response = client.post("/api/auth/callback", json={"token": link.token})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_unknown_token_gets_the_same_401(client):
    response = client.post("/api/auth/callback", json={"token": "never-issued"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_login_is_rate_limited(client):
    for _ in range(5):
        assert client.post("/api/auth/login", json={"email": "spam@example.com"}).status_code == 200
    response = client.post("/api/auth/login", json={"email": "spam@example.com"})
    assert response.status_code == 429


def test_protected_route_rejects_bad_tokens(client, settings):
    assert client.get("/api/agents/me").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/agents/me", headers=bad).status_code == 401

    expired = create_access_token({"sub": "x"}, settings, expires_delta=timedelta(seconds=-5))
    response = client.get("/api/agents/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_token_from_another_issuer_is_rejected(settings):
    forged = jwt.encode({"sub": "x", "iss": "someone-else", "aud": settings.JWT_AUDIENCE}, settings.JWT_SECRET, algorithm=ALGORITHM)
    assert decode_access_token(forged, settings) is None


def test_agent_without_organization_cannot_list_deals(client, make):
    agent = make.agent("loose@example.com")
    response = client.get("/api/deals", headers=make.headers(agent, None, None))
    assert response.status_code == 403
    assert response.json()["detail"] == "No organization selected"


def test_forwarded_for_does_not_reset_the_login_limit(client):
    for i in range(5):
        response = client.post("/api/auth/login", json={"email": "spam@example.com"},
                               headers={"X-Forwarded-For": f"198.51.100.{i}"})
        assert response.status_code == 200
    response = client.post("/api/auth/login", json={"email": "spam@example.com"},
                           headers={"X-Forwarded-For": "198.51.100.99"})
    assert response.status_code == 429


def test_forwarded_for_read_only_behind_trusted_proxy():
    request = Request({
        "type": "http",
        "headers": [(b"x-forwarded-for", b"203.0.113.7, 10.0.0.1")],
        "client": ("10.0.0.1", 50000),
    })
    assert client_ip(request) == "10.0.0.1"
    assert client_ip(request, trust_proxy=False) == "10.0.0.1"
    assert client_ip(request, trust_proxy=True) == "203.0.113.7"
