"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from planning_poker.config import Settings
from planning_poker.containers import AppContainer
from planning_poker.domain.events import SessionEvent, SessionEventType
from planning_poker.domain.models import Session
from planning_poker.services.events import InMemoryEventBus
from planning_poker.services.registry import SessionRegistry, SessionSnapshotRepository
from planning_poker.services.sweeper import ExpirySweeper

START_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    """Manually advanced clock for expiry tests."""

    now: datetime = START_TIME

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class RecordingPublisher:
    """Publisher that keeps every event it receives."""

    events: list[SessionEvent] = field(default_factory=list)

    def publish(self, event: SessionEvent) -> None:
        self.events.append(event)

    def types(self) -> list[SessionEventType]:
        return [event.type for event in self.events]


@dataclass
class InMemorySnapshotRepository(SessionSnapshotRepository):
    """In-memory snapshot store for tests."""

    sessions: dict[str, Session] = field(default_factory=dict)
    deleted: list[str] = field(default_factory=list)
    fail: bool = False

    def save_session(self, session: Session) -> None:
        if self.fail:
            raise RuntimeError("snapshot store unavailable")
        self.sessions[session.id] = session

    def delete_session(self, session_id: str) -> None:
        if self.fail:
            raise RuntimeError("snapshot store unavailable")
        self.deleted.append(session_id)
        self.sessions.pop(session_id, None)

    def load_sessions(self) -> list[Session]:
        return list(self.sessions.values())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        supabase_url=None,
        supabase_service_key=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def snapshot_repository() -> InMemorySnapshotRepository:
    return InMemorySnapshotRepository()


@pytest.fixture
def registry(
    clock: FakeClock,
    publisher: RecordingPublisher,
    snapshot_repository: InMemorySnapshotRepository,
) -> SessionRegistry:
    return SessionRegistry(
        publisher=publisher,
        snapshot_repository=snapshot_repository,
        clock=clock,
    )


@pytest.fixture
def container(settings: Settings, clock: FakeClock) -> AppContainer:
    event_bus = InMemoryEventBus()
    registry = SessionRegistry(
        publisher=event_bus,
        session_ttl=timedelta(hours=settings.session_ttl_hours),
        clock=clock,
    )
    sweeper = ExpirySweeper(registry=registry, interval_seconds=3600)

    async def close_resources() -> None:
        await sweeper.stop()

    return AppContainer(
        settings=settings,
        event_bus=event_bus,
        registry=registry,
        sweeper=sweeper,
        snapshot_repository=None,
        close_resources=close_resources,
    )
