"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from planning_poker.adapters.supabase_snapshot_repository import (
    SupabaseSessionSnapshotRepository,
)
from planning_poker.config import Settings
from planning_poker.services.events import InMemoryEventBus
from planning_poker.services.registry import SessionRegistry, SessionSnapshotRepository
from planning_poker.services.sweeper import ExpirySweeper


@dataclass
class AppContainer:
    """Holds the process-wide registry and its collaborators."""

    settings: Settings
    event_bus: InMemoryEventBus
    registry: SessionRegistry
    sweeper: ExpirySweeper
    snapshot_repository: SessionSnapshotRepository | None
    close_resources: Callable[[], Awaitable[None]]

    def reset(self) -> None:
        """Drop every session; test harnesses call this between runs."""
        self.registry.clear_all_sessions()


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    snapshot_repository: SessionSnapshotRepository | None = None
    if resolved_settings.snapshots_enabled:
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        snapshot_repository = SupabaseSessionSnapshotRepository(
            supabase_client, table=resolved_settings.supabase_table
        )
    event_bus = InMemoryEventBus()
    registry = SessionRegistry(
        publisher=event_bus,
        snapshot_repository=snapshot_repository,
        session_ttl=timedelta(hours=resolved_settings.session_ttl_hours),
        enforce_vote_scale=resolved_settings.enforce_vote_scale,
    )
    sweeper = ExpirySweeper(
        registry=registry,
        interval_seconds=resolved_settings.sweep_interval_seconds,
    )

    async def close_resources() -> None:
        await sweeper.stop()

    return AppContainer(
        settings=resolved_settings,
        event_bus=event_bus,
        registry=registry,
        sweeper=sweeper,
        snapshot_repository=snapshot_repository,
        close_resources=close_resources,
    )
