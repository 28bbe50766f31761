"""Supabase-backed mirror of session snapshots."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from planning_poker.domain.models import Session
from planning_poker.domain.snapshots import session_from_payload, session_to_payload
from planning_poker.services.registry import SessionSnapshotRepository


@dataclass
class SupabaseSessionSnapshotRepository(SessionSnapshotRepository):
    """Stores one row per live session with the full snapshot as JSON."""

    client: Client
    table: str = "poker_sessions"

    def save_session(self, session: Session) -> None:
        """Upsert the snapshot row for a session."""
        self.client.table(self.table).upsert(
            {
                "id": session.id,
                "code": session.code,
                "status": session.status.value,
                "expires_at": session.expires_at.isoformat(),
                "payload_json": session_to_payload(session),
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def delete_session(self, session_id: str) -> None:
        self.client.table(self.table).delete().eq("id", session_id).execute()

    def load_sessions(self) -> list[Session]:
        """Return every stored snapshot, oldest expiry first."""
        response = (
            self.client.table(self.table)
            .select("id, payload_json")
            .order("expires_at")
            .execute()
        )
        if not response.data:
            return []
        return [session_from_payload(row["payload_json"]) for row in response.data]
