"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from incident_commander.engine.incident_manager import IncidentManager
from incident_commander.models import Base
from incident_commander.notifications.gateway import DeliveryKind, DeliveryResult, MessagingGateway
from incident_commander.notifications.router import NotificationRouter
from incident_commander.notifications.throttle import DirectMessageThrottle

P1_CHANNELS = ["C-ENG-ALL", "C-EXEC"]
P2_CHANNELS = ["C-ENG-ALL"]
P1_DM_RECIPIENTS = ["U-CTO", "U-VP-ENG"]


class FakeClock:
    """Mutable clock; call it to read the current time."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingGateway(MessagingGateway):
    """Gateway that records every send and fails for selected recipients."""

    def __init__(self, failing: set[str] | None = None):
        self.sent: list[tuple[str, str, DeliveryKind]] = []
        self.failing = failing or set()

    async def send(self, recipient: str, content: str, kind: DeliveryKind) -> DeliveryResult:
        self.sent.append((recipient, content, kind))
        if recipient in self.failing:
            return DeliveryResult.failure("channel_not_found")
        return DeliveryResult.ok()

    def recipients(self, kind: DeliveryKind | None = None) -> list[str]:
        return [r for r, _, k in self.sent if kind is None or k == kind]


@pytest_asyncio.fixture
async def session_factory():
    """In-memory database shared across sessions via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def router(session_factory, gateway, clock):
    return NotificationRouter(
        db_session_factory=session_factory,
        gateway=gateway,
        p1_channels=P1_CHANNELS,
        p2_channels=P2_CHANNELS,
        p1_dm_recipients=P1_DM_RECIPIENTS,
        throttle=DirectMessageThrottle(window_seconds=300, clock=clock),
        delivery_timeout=1.0,
        clock=clock,
    )


@pytest.fixture
def manager(session_factory, router, clock):
    return IncidentManager(
        db_session_factory=session_factory,
        notification_router=router,
        clock=clock,
    )
