"""Integration test fixtures: in-memory app, async client, fake chat gateway."""

import os
import tempfile

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="incident-commander-logs-")
os.environ["P1_CHANNELS"] = "C-ENG-ALL,C-EXEC"
os.environ["P2_CHANNELS"] = "C-ENG-ALL"
os.environ["P1_DM_RECIPIENTS"] = "U-CTO"
os.environ["SERVICES"] = "payments-api, search"

import incident_commander.database as db_mod
import incident_commander.dependencies as dep_mod
from incident_commander.notifications.gateway import DeliveryResult, MessagingGateway


class FakeGateway(MessagingGateway):
    def __init__(self):
        self.sent = []

    async def send(self, recipient, content, kind):
        self.sent.append((recipient, kind.value))
        return DeliveryResult.ok()


def _reset_singletons():
    """Reset all module-level singletons so each test session starts clean."""
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod.reset_singletons()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_app():
    """Create test app with in-memory database (shared via StaticPool)."""
    _reset_singletons()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Inject into database module BEFORE app import
    db_mod._engine = engine
    factory = async_sessionmaker(engine, expire_on_commit=False)
    db_mod._session_factory = factory

    dep_mod.get_app_config()
    dep_mod._gateway = FakeGateway()

    from incident_commander.models import Base
    from incident_commander.main import app

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await db_mod.seed_default_templates(factory)

    yield app

    await dep_mod.get_status_sync().drain()
    await engine.dispose()
    _reset_singletons()


@pytest_asyncio.fixture(loop_scope="session")
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def gateway(test_app):
    return dep_mod.get_gateway()


@pytest_asyncio.fixture(loop_scope="session")
async def commander_headers():
    return {"X-Actor-Id": "U-ALICE", "X-Actor-Display": "Alice"}
