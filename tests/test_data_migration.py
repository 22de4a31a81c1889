import pytest

from estateflow.models.data_migration import AppliedDataMigration
from estateflow.models.deal import Deal
from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.models.timeline_template import TimelineTemplate
from estateflow.services.data_migration import DATA_MIGRATIONS, run_data_migrations


@pytest.fixture()
def legacy_agent(make):
    """An agent from before organizations existed, with two deals of their own."""
    agent = make.agent(
        "legacy@example.com",
        "Marie Curie",
        brand_color="#ff0000",
        logo_url="https://cdn.test/logo.png",
        subscription_status=SubscriptionStatus.ACTIVE,
        stripe_customer_id="cus_legacy",
        stripe_subscription_id="sub_legacy",
    )
    for _ in range(2):
        make.deal(None, None, agent_id=agent.id)
    return agent


def test_backfill_gives_legacy_agents_an_organization(db_session, legacy_agent):
    applied = run_data_migrations(db_session)
    assert applied == [name for name, _ in DATA_MIGRATIONS]

    membership = db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == legacy_agent.id).one()
    assert membership.role == Role.ADMIN
    assert membership.joined_at == legacy_agent.created_at

    org = db_session.query(Organization).filter(Organization.id == membership.organization_id).one()
    assert org.name == "Marie Curie's Agency"
    assert org.brand_color == "#ff0000"
    assert org.logo_url == "https://cdn.test/logo.png"
    assert org.subscription_status == SubscriptionStatus.ACTIVE
    assert org.stripe_customer_id == "cus_legacy"
    assert org.stripe_subscription_id == "sub_legacy"

    for deal in db_session.query(Deal).filter(Deal.agent_id == legacy_agent.id).all():
        assert deal.organization_id == org.id
        assert deal.assigned_to_agent_id == legacy_agent.id
        assert deal.created_by_agent_id == legacy_agent.id


def test_migrations_run_once(db_session, legacy_agent):
    run_data_migrations(db_session)
    assert run_data_migrations(db_session) == []
    assert db_session.query(Organization).count() == 1
    assert db_session.query(TimelineTemplate).count() == 3
    assert {row.name for row in db_session.query(AppliedDataMigration).all()} == {n for n, _ in DATA_MIGRATIONS}


def test_agents_with_a_membership_are_left_alone(db_session, make):
    org, (member,) = make.team(Role.EMPLOYEE)
    run_data_migrations(db_session)
    assert db_session.query(OrganizationMember).filter(OrganizationMember.agent_id == member.id).count() == 1
    assert db_session.query(Organization).count() == 1


def test_agent_named_only_by_email(db_session, make):
    make.agent("nameless@example.com")
    run_data_migrations(db_session)
    assert db_session.query(Organization).one().name == "nameless@example.com's Agency"


def test_failed_migration_is_rolled_back_and_retried(db_session, legacy_agent):
    calls = []

    def broken(db):
        db.add(TimelineTemplate(name="half done", steps=[]))
        db.flush()
        raise RuntimeError("crashed halfway")

    def fixed(db):
        calls.append("fixed")
        return 0

    with pytest.raises(RuntimeError):
        run_data_migrations(db_session, [("0099_example", broken)])
    assert db_session.query(AppliedDataMigration).count() == 0
    assert db_session.query(TimelineTemplate).count() == 0

    assert run_data_migrations(db_session, [("0099_example", fixed)]) == ["0099_example"]
    assert calls == ["fixed"]


def test_seeded_templates_are_served(client, make, db_session):
    run_data_migrations(db_session)
    org, (admin,) = make.team(Role.ADMIN)
    response = client.get("/api/templates", headers=make.headers(admin, org, Role.ADMIN))
    assert response.status_code == 200
    assert sorted(t["name"] for t in response.json()) == ["Achat Appartement", "Location Prestige", "Vente Maison"]
