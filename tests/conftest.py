import pytest
from asgi_lifespan import LifespanManager
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

from globalsim.config.settings import Settings
from globalsim.main import create_app
from globalsim.store import InMemoryStore
from tests.helpers import FakeClock, OutboxSMSProvider

load_dotenv()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        ENV="test",
        OTP_SECRET="test-secret",
        STORE_BACKEND="memory",
        AI_ROUTING_ENABLED=False,
        DEMO_SMS_FAILURE_RATE=0.0,
        ESIM_ACTIVATION_DELAY_SECONDS=0.0,
        ESIM_ACTIVATION_FAILURE_RATE=0.0,
    )


@pytest.fixture
def outbox():
    return OutboxSMSProvider()


@pytest.fixture
def app(settings, outbox):
    app = create_app(settings=settings, store=InMemoryStore())
    app.state.otp_service.sms_router.providers["demo"] = outbox
    return app


@pytest.fixture
async def ac_client(app):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
