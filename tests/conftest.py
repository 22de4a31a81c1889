import os

# Must be set before estateflow.db.session builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RUN_DATA_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["ENVIRONMENT"] = "test"

import uuid
from datetime import timedelta
from typing import Generator, Optional

import pytest
import stripe
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import estateflow.models  # noqa: F401
from estateflow.api.deps import get_billing_gateway, get_email_service, get_signature_client
from estateflow.core.config import Settings, get_settings
from estateflow.core.rate_limit import reset_rate_limits
from estateflow.db.session import Base, get_db
from estateflow.main import app
from estateflow.models.agent import Agent
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.models.timeline_step import StepStatus, TimelineStep
from estateflow.services.auth import create_agent_token
from estateflow.services.email import EmailService
from estateflow.services.signature import SignatureProviderError, SignatureRequestResult
from estateflow.utils.clock import utcnow

SEAT_PRICE = "price_seat"


class RecordingEmailService(EmailService):
    """Keeps every outgoing email instead of calling Resend."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent = []

    def send(self, to_email: str, subject: str, html_content: str) -> bool:
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return True

    def sent_to(self, email: str):
        return [m for m in self.sent if m["to"] == email]


class FakeStripeGateway:
    """In-memory stand-in for StripeBillingGateway."""

    def __init__(self):
        self.subscriptions = {}
        self.customer_subscriptions = {}
        self.customers = set()
        self.fail = False
        self.checkout_sessions = []
        self._item_seq = 0

    def _check(self):
        if self.fail:
            raise stripe.StripeError("Stripe is unavailable")

    def add_subscription(self, customer_id: str, subscription_id: str = "sub_test", items=None, status: str = "active"):
        subscription = {"id": subscription_id, "status": status, "items": {"data": list(items or [])}}
        self.subscriptions[subscription_id] = subscription
        self.customer_subscriptions.setdefault(customer_id, []).append(subscription)
        self.customers.add(customer_id)
        return subscription

    def seat_item(self, subscription_id: str = "sub_test"):
        for item in self.subscriptions[subscription_id]["items"]["data"]:
            if item["price"]["id"] == SEAT_PRICE:
                return item
        return None

    def seat_quantity(self, subscription_id: str = "sub_test") -> int:
        item = self.seat_item(subscription_id)
        return item["quantity"] if item else 0

    def _find_item(self, item_id: str):
        for subscription in self.subscriptions.values():
            for item in subscription["items"]["data"]:
                if item["id"] == item_id:
                    return subscription, item
        raise stripe.InvalidRequestError(f"No such subscription item: {item_id}", "id")

    def latest_subscription(self, customer_id: str):
        self._check()
        subscriptions = self.customer_subscriptions.get(customer_id) or []
        return subscriptions[-1] if subscriptions else None

    def retrieve_subscription(self, subscription_id: str):
        self._check()
        if subscription_id not in self.subscriptions:
            raise stripe.InvalidRequestError(f"No such subscription: {subscription_id}", "id")
        return self.subscriptions[subscription_id]

    def set_item_quantity(self, item_id: str, quantity: int):
        self._check()
        _, item = self._find_item(item_id)
        item["quantity"] = quantity
        return item

    def create_item(self, subscription_id: str, price_id: str, quantity: int = 1):
        self._check()
        self._item_seq += 1
        item = {"id": f"si_{self._item_seq}", "price": {"id": price_id, "unit_amount": 1000}, "quantity": quantity}
        self.subscriptions[subscription_id]["items"]["data"].append(item)
        return item

    def delete_item(self, item_id: str) -> None:
        self._check()
        subscription, item = self._find_item(item_id)
        subscription["items"]["data"].remove(item)

    def create_customer(self, email: str, name: Optional[str], metadata):
        self._check()
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.add(customer_id)
        return {"id": customer_id, "email": email}

    def customer_exists(self, customer_id: str) -> bool:
        return customer_id in self.customers

    def create_checkout_session(self, customer_id, price_id, success_url, cancel_url, metadata):
        self._check()
        self.checkout_sessions.append({"customer": customer_id, "price": price_id, "metadata": metadata})
        return {"id": "cs_test", "url": "https://checkout.stripe.test/cs_test"}

    def create_portal_session(self, customer_id, return_url):
        self._check()
        return {"id": "bps_test", "url": "https://billing.stripe.test/session"}


class FakeSignatureClient:
    def __init__(self):
        self.requests = []
        self.status = "ongoing"
        self.fail = False
        self.signed_content = b"%PDF-1.4 signed"

    def create_signature_request(self, file_path, signer_email, signer_name, document_name):
        if self.fail:
            raise SignatureProviderError("provider down")
        self.requests.append({"file_path": file_path, "signer_email": signer_email, "signer_name": signer_name})
        return SignatureRequestResult("sr_1", "https://sign.test/sr_1", "ongoing")

    def get_status(self, signature_request_id):
        return self.status

    def download_signed_document(self, signature_request_id):
        return self.signed_content


class Factory:
    """Builds persisted rows and bearer headers for tests."""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self._clock = utcnow() - timedelta(days=30)

    def _tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def organization(self, name: str = "Acme Realty", status: SubscriptionStatus = SubscriptionStatus.ACTIVE, **kwargs):
        org = Organization(name=name, subscription_status=status, **kwargs)
        self.db.add(org)
        self.db.commit()
        return org

    def agent(self, email: str, full_name: Optional[str] = None, **kwargs):
        agent = Agent(email=email, full_name=full_name, **kwargs)
        self.db.add(agent)
        self.db.commit()
        return agent

    def member(self, org: Organization, agent: Agent, role: Role = Role.EMPLOYEE):
        membership = OrganizationMember(organization_id=org.id, agent_id=agent.id, role=role, joined_at=self._tick())
        self.db.add(membership)
        self.db.commit()
        return membership

    def team(self, *roles: Role, org: Optional[Organization] = None):
        """An organization plus one agent per role, in order."""
        org = org or self.organization()
        agents = []
        for index, role in enumerate(roles):
            agent = self.agent(f"{role.value.lower()}{index}-{uuid.uuid4().hex[:6]}@example.com", f"{role.value} {index}")
            self.member(org, agent, role)
            agents.append(agent)
        return org, agents

    def deal(self, org: Optional[Organization], assigned_to: Optional[Agent] = None,
             status: DealStatus = DealStatus.ACTIVE, **kwargs):
        now = utcnow()
        values = dict(
            organization_id=org.id if org else None,
            assigned_to_agent_id=assigned_to.id if assigned_to else None,
            created_by_agent_id=assigned_to.id if assigned_to else None,
            client_name="Client",
            client_email="client@example.com",
            status=status,
            access_token=uuid.uuid4().hex,
            created_at=now,
            updated_at=now,
        )
        values.update(kwargs)
        deal = Deal(**values)
        self.db.add(deal)
        self.db.commit()
        return deal

    def step(self, deal: Deal, title: str = "Step", status: StepStatus = StepStatus.PENDING, order: int = 1, **kwargs):
        values = dict(
            deal_id=deal.id,
            title=title,
            status=status,
            order=order,
            expected_duration_days=7,
            inactivity_warning_days=5,
            inactivity_critical_days=10,
            last_activity_at=utcnow(),
        )
        values.update(kwargs)
        step = TimelineStep(**values)
        self.db.add(step)
        self.db.commit()
        return step

    def token(self, agent: Agent, org: Optional[Organization], role: Optional[Role]) -> str:
        return create_agent_token(self.settings, agent, org.id if org else None, role)

    def headers(self, agent: Agent, org: Optional[Organization], role: Optional[Role]):
        return {"Authorization": f"Bearer {self.token(agent, org, role)}"}


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        JWT_SECRET="test-jwt-secret-that-is-long-enough-0123456789",
        FRONTEND_URL="http://app.test",
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET="whsec_test",
        STRIPE_PRICE_MONTHLY="price_monthly",
        STRIPE_PRICE_YEARLY="price_yearly",
        STRIPE_PRICE_SEAT=SEAT_PRICE,
        RESEND_API_KEY="re_test",
        UPLOAD_PATH=str(tmp_path / "uploads"),
    )


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def email_outbox(settings) -> RecordingEmailService:
    return RecordingEmailService(settings)


@pytest.fixture()
def fake_stripe() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture()
def fake_signatures() -> FakeSignatureClient:
    return FakeSignatureClient()


@pytest.fixture()
def make(db_session, settings) -> Factory:
    return Factory(db_session, settings)


@pytest.fixture()
def client(db_session, settings, email_outbox, fake_stripe, fake_signatures) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_email_service] = lambda: email_outbox
    app.dependency_overrides[get_billing_gateway] = lambda: fake_stripe
    app.dependency_overrides[get_signature_client] = lambda: fake_signatures
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
