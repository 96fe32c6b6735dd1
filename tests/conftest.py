"""
Pytest fixtures for WhatsApp inbox tests.

Every test gets a fresh in-memory SQLite database and a stub bridge.
"""

import os

# Settings are cached on first use, so the environment is set before any import
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("WHATSAPP_PROVIDER", "bridge")

from uuid import UUID

import pytest
from sqlalchemy.orm import sessionmaker

from inbox_core.db import build_engine
from whatsapp_inbox.contracts.context import CallerIdentity
from whatsapp_inbox.persistence.models import AccountStatus, SessionStatus, WhatsAppBase
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.providers.stub.client import StubBridgeProvider
from whatsapp_inbox.routing.conversation import ConversationRouter


@pytest.fixture
def sample_tenant_id():
    """Sample tenant UUID."""
    return UUID("12345678-1234-1234-1234-123456789012")


@pytest.fixture
def other_tenant_id():
    """A second tenant that must never see the first one's data."""
    return UUID("87654321-4321-4321-4321-210987654321")


@pytest.fixture
def sample_user_id():
    return UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")


@pytest.fixture
def sample_phone():
    """Sample customer phone number."""
    return "+911234567890"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    WhatsAppBase.metadata.create_all(engine)
    yield engine
    WhatsAppBase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db):
    return WhatsAppRepository(db)


@pytest.fixture
def caller(sample_user_id, sample_tenant_id):
    """Licensed caller of the sample tenant."""
    return CallerIdentity(
        user_id=sample_user_id,
        tenant_id=sample_tenant_id,
        licensed_modules=("whatsapp",),
    )


@pytest.fixture
def other_caller(other_tenant_id):
    return CallerIdentity(
        user_id=UUID("99999999-9999-9999-9999-999999999999"),
        tenant_id=other_tenant_id,
        licensed_modules=("whatsapp",),
    )


@pytest.fixture
def stub_provider():
    return StubBridgeProvider()


@pytest.fixture
def provider_factory(stub_provider):
    """Provider factory that always hands out the test's stub."""
    return lambda account: stub_provider


@pytest.fixture
def make_account(db, repo, sample_tenant_id):
    def _make(tenant_id=None, provider_base_url="http://bridge.test", provider_api_key="bridge-key", **kwargs):
        account = repo.create_account(
            tenant_id=tenant_id or sample_tenant_id,
            provider_base_url=provider_base_url,
            provider_api_key=provider_api_key,
            status=kwargs.pop("status", AccountStatus.ACTIVE),
            **kwargs,
        )
        db.commit()
        return account

    return _make


@pytest.fixture
def account(make_account):
    return make_account(business_name="Acme Hardware")


@pytest.fixture
def make_session(db, repo):
    def _make(account, provider_session_id, status=SessionStatus.CONNECTED, phone_number="+15550000001"):
        session = repo.create_session(
            account_id=account.id,
            provider_session_id=provider_session_id,
            qr_code_url=f"data:image/png;base64,{provider_session_id}",
            device_name="Front desk",
        )
        session.status = status.value
        session.phone_number = phone_number
        db.commit()
        return session

    return _make


@pytest.fixture
def connected_session(make_session, account):
    return make_session(account, "waha-1")


@pytest.fixture
def conversation(db, account, sample_phone):
    """Conversation with a known contact and no bound session."""
    router = ConversationRouter(db)
    identity = router.resolve_contact(sample_phone, account.tenant_id)
    return router.resolve_conversation(account.id, identity.contact_id, None)


@pytest.fixture
def inbound_data(sample_phone):
    """Data object of a text message webhook."""
    return {
        "from": sample_phone,
        "body": "Hi",
        "type": "text",
        "id": "wamid.inbound.1",
        "timestamp": 1704067200,
    }
