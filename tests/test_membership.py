from datetime import timedelta

import pytest

from estateflow.core.security import decode_access_token
from estateflow.models.agent import Agent
from estateflow.models.deal import Deal
from estateflow.models.invitation import Invitation
from estateflow.models.organization import SubscriptionStatus
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.utils.clock import utcnow


@pytest.fixture()
def org_setup(make, fake_stripe):
    """Org O with Admin A and Employee E, billed through A's Stripe customer."""
    org, (admin, employee) = make.team(Role.ADMIN, Role.EMPLOYEE)
    admin.stripe_customer_id = "cus_admin"
    make.db.commit()
    fake_stripe.add_subscription("cus_admin", items=[{"id": "si_base", "price": {"id": "price_monthly"}, "quantity": 1}])
    return org, admin, employee


def _admin_headers(make, org, admin):
    return make.headers(admin, org, Role.ADMIN)


def _invite(client, make, org, admin, email="new@x.com", role="TeamLead"):
    return client.post(
        "/api/organization/invite",
        json={"email": email, "role": role},
        headers=_admin_headers(make, org, admin),
    )


def _admins(db_session, org):
    return db_session.query(OrganizationMember).filter(
        OrganizationMember.organization_id == org.id,
        OrganizationMember.role == Role.ADMIN,
    ).all()


def test_invite_and_accept_end_to_end(client, make, db_session, settings, fake_stripe, email_outbox, org_setup):
    org, admin, _ = org_setup
    assert fake_stripe.seat_quantity() == 0

    response = _invite(client, make, org, admin)
    assert response.status_code == 201
    assert response.json()["role"] == "TeamLead"
    assert fake_stripe.seat_quantity() == 1

    invitation = db_session.query(Invitation).filter(Invitation.email == "new@x.com").one()
    assert invitation.accepted_at is None
    lifetime = invitation.expires_at - invitation.created_at
    assert timedelta(days=7) - timedelta(minutes=1) < lifetime <= timedelta(days=7)
    assert len(email_outbox.sent_to("new@x.com")) == 1
    assert f"/invite/{invitation.token}" in email_outbox.sent_to("new@x.com")[0]["html"]

    info = client.get(f"/api/invite/{invitation.token}")
    assert info.status_code == 200
    assert info.json()["organization_name"] == org.name
    assert info.json()["role"] == "TeamLead"

    accepted = client.post(f"/api/invite/{invitation.token}/accept", json={"full_name": "Jane Doe"})
    assert accepted.status_code == 200
    assert accepted.json()["is_new_user"] is True

    jane = db_session.query(Agent).filter(Agent.email == "new@x.com").one()
    assert jane.full_name == "Jane Doe"
    membership = db_session.query(OrganizationMember).filter(
        OrganizationMember.organization_id == org.id,
        OrganizationMember.agent_id == jane.id,
    ).one()
    assert membership.role == Role.TEAM_LEAD

    db_session.refresh(invitation)
    assert invitation.accepted_at is not None

    claims = decode_access_token(accepted.json()["token"], settings)
    assert claims["org_id"] == str(org.id)
    assert claims["role"] == "TeamLead"
    assert claims["sub"] == str(jane.id)


def test_invitation_cannot_be_accepted_twice(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    _invite(client, make, org, admin)
    token = db_session.query(Invitation).one().token

    assert client.post(f"/api/invite/{token}/accept", json={"full_name": "Jane Doe"}).status_code == 200
    replay = client.post(f"/api/invite/{token}/accept", json={"full_name": "Jane Doe"})
    assert replay.status_code == 404
    assert replay.json()["detail"] == "Invalid or expired invitation"


def test_expired_invitation_is_rejected(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    _invite(client, make, org, admin)
    invitation = db_session.query(Invitation).one()
    invitation.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    assert client.get(f"/api/invite/{invitation.token}").status_code == 404
    response = client.post(f"/api/invite/{invitation.token}/accept", json={"full_name": "Late"})
    assert response.status_code == 404


def test_new_user_must_give_a_name(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    _invite(client, make, org, admin)
    token = db_session.query(Invitation).one().token

    response = client.post(f"/api/invite/{token}/accept", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Full name is required for new users"


def test_existing_agent_joins_without_a_name(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    other_org, (veteran,) = make.team(Role.ADMIN, org=make.organization("Elsewhere"))
    _invite(client, make, org, admin, email=veteran.email, role="Employee")
    token = db_session.query(Invitation).one().token

    response = client.post(f"/api/invite/{token}/accept", json={})
    assert response.status_code == 200
    assert response.json()["is_new_user"] is False
    assert db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == veteran.id).count() == 2


@pytest.mark.parametrize("email, role, detail", [
    ("", "Employee", "Email is required"),
    ("new@x.com", "Admin", "Cannot invite as admin"),
    ("new@x.com", "Owner", "Invalid role"),
])
def test_invite_validation(client, make, org_setup, fake_stripe, email, role, detail):
    org, admin, _ = org_setup
    response = _invite(client, make, org, admin, email=email, role=role)
    assert response.status_code == 400
    assert response.json()["detail"] == detail
    assert fake_stripe.seat_quantity() == 0


def test_cannot_invite_an_existing_member_or_twice(client, make, org_setup):
    org, admin, employee = org_setup
    response = _invite(client, make, org, admin, email=employee.email.upper())
    assert response.status_code == 400
    assert response.json()["detail"] == "This email is already a member of your organization"

    assert _invite(client, make, org, admin).status_code == 201
    again = _invite(client, make, org, admin)
    assert again.status_code == 400
    assert again.json()["detail"] == "An invitation is already pending for this email"


def test_only_admins_invite(client, make, org_setup):
    org, _, employee = org_setup
    response = client.post(
        "/api/organization/invite",
        json={"email": "new@x.com", "role": "Employee"},
        headers=make.headers(employee, org, Role.EMPLOYEE),
    )
    assert response.status_code == 403


def test_trial_organization_cannot_invite(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    org.subscription_status = SubscriptionStatus.TRIAL
    db_session.commit()

    response = _invite(client, make, org, admin)
    assert response.status_code == 400
    assert response.json()["detail"] == "Subscription required to invite team members"


def test_billing_failure_blocks_the_invitation(client, make, db_session, fake_stripe, email_outbox, org_setup):
    org, admin, _ = org_setup
    fake_stripe.fail = True

    response = _invite(client, make, org, admin)
    assert response.status_code == 400
    assert response.json()["detail"] == "Failed to add seat to subscription"
    assert db_session.query(Invitation).count() == 0
    assert email_outbox.sent_to("new@x.com") == []


def test_seat_count_tracks_invites_and_cancellations(client, make, db_session, fake_stripe, org_setup):
    org, admin, _ = org_setup
    headers = _admin_headers(make, org, admin)
    for email in ("one@x.com", "two@x.com", "three@x.com"):
        assert _invite(client, make, org, admin, email=email).status_code == 201
    assert fake_stripe.seat_quantity() == 3

    invitation = db_session.query(Invitation).filter(Invitation.email == "two@x.com").one()
    assert client.delete(f"/api/organization/invitations/{invitation.id}", headers=headers).status_code == 204
    assert fake_stripe.seat_quantity() == 2
    assert db_session.query(Invitation).count() == 2

    listed = client.get("/api/organization/invitations", headers=headers).json()
    assert {i["email"] for i in listed} == {"one@x.com", "three@x.com"}


def test_accepted_invitation_cannot_be_cancelled(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    _invite(client, make, org, admin)
    invitation = db_session.query(Invitation).one()
    client.post(f"/api/invite/{invitation.token}/accept", json={"full_name": "Jane Doe"})

    response = client.delete(f"/api/organization/invitations/{invitation.id}", headers=_admin_headers(make, org, admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "Invitation already accepted"


def test_change_member_role(client, make, db_session, org_setup):
    org, admin, employee = org_setup
    headers = _admin_headers(make, org, admin)

    response = client.put(f"/api/organization/members/{employee.id}/role", json={"role": "TeamLead"}, headers=headers)
    assert response.status_code == 204
    membership = db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == employee.id).one()
    assert membership.role == Role.TEAM_LEAD


@pytest.mark.parametrize("target, role, detail", [
    ("self", "Employee", "Cannot change your own role"),
    ("employee", "Admin", "Cannot promote to admin. Use transfer-admin instead."),
    ("employee", "Boss", "Invalid role"),
])
def test_change_role_guards(client, make, org_setup, target, role, detail):
    org, admin, employee = org_setup
    agent = admin if target == "self" else employee
    response = client.put(
        f"/api/organization/members/{agent.id}/role",
        json={"role": role},
        headers=_admin_headers(make, org, admin),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_remove_member_reassigns_their_deals_to_the_admin(client, make, db_session, fake_stripe, org_setup):
    org, admin, employee = org_setup
    _invite(client, make, org, admin, email="temp@x.com")
    assert fake_stripe.seat_quantity() == 1
    deals = [make.deal(org, employee) for _ in range(3)]

    response = client.delete(f"/api/organization/members/{employee.id}", headers=_admin_headers(make, org, admin))
    assert response.status_code == 204

    assert db_session.query(Deal).filter(
        Deal.organization_id == org.id, Deal.assigned_to_agent_id == employee.id
    ).count() == 0
    for deal in deals:
        db_session.refresh(deal)
        assert deal.assigned_to_agent_id == admin.id
    assert db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == employee.id).count() == 0
    assert fake_stripe.seat_quantity() == 0


def test_remove_member_succeeds_when_stripe_is_down(client, make, db_session, fake_stripe, org_setup):
    org, admin, employee = org_setup
    fake_stripe.fail = True
    response = client.delete(f"/api/organization/members/{employee.id}", headers=_admin_headers(make, org, admin))
    assert response.status_code == 204


def test_admin_cannot_remove_self(client, make, db_session, org_setup):
    org, admin, _ = org_setup
    response = client.delete(f"/api/organization/members/{admin.id}", headers=_admin_headers(make, org, admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot remove yourself from the organization"
    assert len(_admins(db_session, org)) == 1


def test_transfer_admin_keeps_exactly_one_admin(client, make, db_session, org_setup):
    org, admin, employee = org_setup
    headers = _admin_headers(make, org, admin)

    response = client.post("/api/organization/transfer-admin", json={"agent_id": str(employee.id)}, headers=headers)
    assert response.status_code == 204

    admins = _admins(db_session, org)
    assert [m.agent_id for m in admins] == [employee.id]
    old = db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == admin.id).one()
    assert old.role == Role.TEAM_LEAD

    # The stale token still says Admin but the membership no longer does
    stale = client.put(f"/api/organization/members/{employee.id}/role", json={"role": "Employee"}, headers=headers)
    assert stale.status_code == 403

    # The new admin cannot be demoted or removed through the member endpoints
    new_headers = make.headers(employee, org, Role.ADMIN)
    demote = client.put(f"/api/organization/members/{admin.id}/role", json={"role": "Admin"}, headers=new_headers)
    assert demote.status_code == 400
    assert len(_admins(db_session, org)) == 1


def test_member_listing_counts_active_deals(client, make, org_setup):
    org, admin, employee = org_setup
    make.deal(org, employee)
    make.deal(org, employee)
    response = client.get("/api/organization/members", headers=make.headers(employee, org, Role.EMPLOYEE))
    assert response.status_code == 200
    by_id = {m["agent_id"]: m for m in response.json()}
    assert by_id[str(employee.id)]["active_deals"] == 2
    assert by_id[str(admin.id)]["role"] == "Admin"
