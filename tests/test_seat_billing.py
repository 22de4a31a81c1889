import pytest

from estateflow.models.organization_member import Role
from estateflow.services.seat_billing import SeatBillingReconciler


@pytest.fixture()
def billed_org(make, fake_stripe):
    org, (admin,) = make.team(Role.ADMIN)
    admin.stripe_customer_id = "cus_admin"
    make.db.commit()
    fake_stripe.add_subscription("cus_admin", items=[{"id": "si_base", "price": {"id": "price_monthly"}, "quantity": 1}])
    return org


@pytest.fixture()
def reconciler(db_session, settings, fake_stripe):
    return SeatBillingReconciler(db=db_session, settings=settings, gateway=fake_stripe)


def test_first_seat_creates_the_line_item(reconciler, billed_org, fake_stripe):
    assert reconciler.add_seat(billed_org) is True
    assert fake_stripe.seat_quantity() == 1
    assert billed_org.stripe_seat_item_id == fake_stripe.seat_item()["id"]


def test_subscription_is_discovered_from_the_admin_customer(reconciler, billed_org):
    assert billed_org.stripe_subscription_id is None
    reconciler.add_seat(billed_org)
    assert billed_org.stripe_subscription_id == "sub_test"
    assert billed_org.stripe_customer_id == "cus_admin"


def test_seats_go_up_and_down(reconciler, billed_org, fake_stripe):
    for _ in range(3):
        assert reconciler.add_seat(billed_org)
    assert fake_stripe.seat_quantity() == 3

    reconciler.remove_seat(billed_org)
    assert fake_stripe.seat_quantity() == 2


def test_removing_the_last_seat_deletes_the_item(reconciler, billed_org, fake_stripe):
    reconciler.add_seat(billed_org)
    reconciler.remove_seat(billed_org)
    assert fake_stripe.seat_item() is None
    assert billed_org.stripe_seat_item_id is None

    # Nothing left to remove; still no error
    reconciler.remove_seat(billed_org)
    assert fake_stripe.seat_item() is None


def test_add_seat_reports_stripe_failure(reconciler, billed_org, fake_stripe):
    fake_stripe.fail = True
    assert reconciler.add_seat(billed_org) is False


def test_remove_seat_swallows_stripe_failure(reconciler, billed_org, fake_stripe):
    reconciler.add_seat(billed_org)
    fake_stripe.fail = True
    reconciler.remove_seat(billed_org)
    fake_stripe.fail = False
    assert fake_stripe.seat_quantity() == 1


def test_no_subscription_means_nothing_to_bill(reconciler, make, fake_stripe):
    org, _ = make.team(Role.ADMIN)
    assert reconciler.add_seat(org) is True
    assert fake_stripe.subscriptions == {}


def test_unconfigured_billing_is_a_no_op(db_session, settings, billed_org, fake_stripe):
    unconfigured = settings.model_copy(update={"STRIPE_PRICE_SEAT": None})
    reconciler = SeatBillingReconciler(db=db_session, settings=unconfigured, gateway=fake_stripe)
    assert reconciler.add_seat(billed_org) is True
    assert fake_stripe.seat_item() is None


def test_existing_seat_item_is_reused(reconciler, make, fake_stripe, settings):
    org, _ = make.team(Role.ADMIN)
    org.stripe_customer_id = "cus_org"
    make.db.commit()
    fake_stripe.add_subscription(
        "cus_org", subscription_id="sub_org",
        items=[{"id": "si_seats", "price": {"id": settings.STRIPE_PRICE_SEAT}, "quantity": 4}],
    )
    reconciler.add_seat(org)
    assert fake_stripe.seat_quantity("sub_org") == 5
    assert org.stripe_seat_item_id == "si_seats"
