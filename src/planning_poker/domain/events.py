"""Domain models for session change notifications."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from planning_poker.domain.models import Session


class SessionEventType(StrEnum):
    SESSION_CREATED = "session_created"
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_STATUS_CHANGED = "participant_status_changed"
    PARTICIPANT_LEFT = "participant_left"
    STORY_ADDED = "story_added"
    VOTING_STARTED = "voting_started"
    VOTE_SUBMITTED = "vote_submitted"
    VOTES_REVEALED = "votes_revealed"
    ESTIMATE_FINALIZED = "estimate_finalized"
    REVOTE_STARTED = "revote_started"
    SESSION_DELETED = "session_deleted"
    SESSION_EXPIRED = "session_expired"


@dataclass(frozen=True)
class SessionEvent:
    """A fact about a session that a relay layer can broadcast.

    ``session`` is a detached snapshot, or None once the session is gone.
    """

    type: SessionEventType
    session_id: str
    occurred_at: datetime
    session: Session | None = None
    participant_id: str | None = None
    story_id: str | None = None
