"""Authoritative in-memory registry of live planning poker sessions."""

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from planning_poker.domain.errors import (
    DuplicateNameError,
    ParticipantNotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from planning_poker.domain.events import SessionEvent, SessionEventType
from planning_poker.domain.models import (
    EstimationScale,
    Participant,
    ParticipantRole,
    Session,
    Story,
    parse_vote,
)
from planning_poker.services import voting
from planning_poker.services.events import SessionEventPublisher
from planning_poker.services.identifiers import (
    generate_participant_id,
    generate_session_code,
    generate_session_id,
)

_logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=2)


class SessionSnapshotRepository(Protocol):
    """Optional durable mirror of session snapshots."""

    def save_session(self, session: Session) -> None:
        """Insert or replace the stored snapshot of a session."""

    def delete_session(self, session_id: str) -> None:
        """Remove a stored snapshot."""

    def load_sessions(self) -> list[Session]:
        """Return every stored snapshot."""


@dataclass(frozen=True)
class SessionMembership:
    """A session snapshot plus the id of the participant who created or joined it."""

    session: Session
    participant_id: str


@dataclass(frozen=True)
class _SnapshotWrite:
    """A queued save, or a delete when ``snapshot`` is None."""

    session_id: str
    snapshot: Session | None


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionRegistry:
    """Owns every live session and applies the voting workflow to them.

    All reads and writes of one session happen under a single registry lock,
    so concurrent votes never lose updates. Callers always receive detached
    copies; mutating a returned session has no effect on the registry.

    Snapshot writes and events are queued under the lock and delivered after
    it is released, by one draining thread at a time and in mutation order.
    A caller that finds another thread draining leaves its work to that thread.
    """

    publisher: SessionEventPublisher | None = None
    snapshot_repository: SessionSnapshotRepository | None = None
    session_ttl: timedelta = DEFAULT_SESSION_TTL
    enforce_vote_scale: bool = False
    clock: Callable[[], datetime] = _utcnow
    max_code_attempts: int = 100
    _sessions: dict[str, Session] = field(default_factory=dict, init=False)
    _ids_by_code: dict[str, str] = field(default_factory=dict, init=False)
    _outbox: list[SessionEvent | _SnapshotWrite] = field(
        default_factory=list, init=False
    )
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)
    _drain_lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def create_session(
        self, title: str, facilitator_name: str, scale: EstimationScale | str
    ) -> SessionMembership:
        """Create a session in waiting status with its facilitator."""
        cleaned_title = voting.validate_text(
            title, "Session title", voting.SESSION_TITLE_MAX_LENGTH
        )
        name = voting.validate_text(
            facilitator_name, "Participant name", voting.PARTICIPANT_NAME_MAX_LENGTH
        )
        resolved_scale = _resolve_scale(scale)
        with self._transaction() as now:
            facilitator = Participant(
                id=generate_participant_id(),
                name=name,
                role=ParticipantRole.FACILITATOR,
                is_online=True,
                joined_at=now,
            )
            session = Session(
                id=generate_session_id(),
                code=self._unique_code(),
                title=cleaned_title,
                scale=resolved_scale,
                participants=[facilitator],
                created_at=now,
                updated_at=now,
                expires_at=now + self.session_ttl,
            )
            self._sessions[session.id] = session
            self._ids_by_code[session.code] = session.id
            snapshot = self._commit(
                session, SessionEventType.SESSION_CREATED, now, facilitator.id
            )
        _logger.info("Session created: id=%s code=%s", session.id, session.code)
        return SessionMembership(session=snapshot, participant_id=facilitator.id)

    def join_session(self, code: str, participant_name: str) -> SessionMembership:
        """Add a member to the session identified by its shareable code."""
        name = voting.validate_text(
            participant_name, "Participant name", voting.PARTICIPANT_NAME_MAX_LENGTH
        )
        with self._transaction() as now:
            session_id = self._ids_by_code.get(_normalize_code(code))
            if session_id is None:
                raise SessionNotFoundError()
            session = self._live_session(session_id, now)
            if any(participant.name == name for participant in session.participants):
                raise DuplicateNameError()
            member = Participant(
                id=generate_participant_id(),
                name=name,
                role=ParticipantRole.MEMBER,
                is_online=True,
                joined_at=now,
            )
            session.participants.append(member)
            session.updated_at = now
            snapshot = self._commit(
                session, SessionEventType.PARTICIPANT_JOINED, now, member.id
            )
        _logger.info("Participant joined: session=%s name=%s", session_id, name)
        return SessionMembership(session=snapshot, participant_id=member.id)

    def get_session(self, session_id: str) -> Session | None:
        """Return a copy of a live session, or None when absent or expired."""
        with self._transaction() as now:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(now):
                self._discard(session.id, SessionEventType.SESSION_EXPIRED, now)
                return None
            return deepcopy(session)

    def get_session_by_code(self, code: str) -> Session | None:
        with self._lock:
            session_id = self._ids_by_code.get(_normalize_code(code))
        if session_id is None:
            return None
        return self.get_session(session_id)

    def get_current_story(self, session_id: str) -> Story | None:
        """Return a copy of the story being voted on, if any."""
        session = self.get_session(session_id)
        if session is None:
            return None
        return session.current_story()

    def add_story(
        self,
        session_id: str,
        requester_id: str,
        title: str,
        description: str | None = None,
    ) -> Session:
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            voting.require_facilitator(session, requester_id, "add stories")
            story = voting.add_story(session, title, description, now)
            return self._commit(
                session, SessionEventType.STORY_ADDED, now, requester_id, story.id
            )

    def update_participant_status(
        self, session_id: str, participant_id: str, is_online: bool
    ) -> Session:
        """Record presence for a participant; any caller may report it."""
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            participant = session.find_participant(participant_id)
            if participant is None:
                raise ParticipantNotFoundError()
            participant.is_online = is_online
            session.updated_at = now
            return self._commit(
                session, SessionEventType.PARTICIPANT_STATUS_CHANGED, now, participant_id
            )

    def remove_participant(self, session_id: str, participant_id: str) -> Session | None:
        """Remove a participant; the session is deleted when nobody is left.

        The facilitator role is never reassigned.
        """
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            participant = session.find_participant(participant_id)
            if participant is None:
                raise ParticipantNotFoundError()
            session.participants.remove(participant)
            voting.withdraw_votes(session, participant)
            session.updated_at = now
            if not session.participants:
                self._discard(session.id, SessionEventType.SESSION_DELETED, now)
                return None
            return self._commit(
                session, SessionEventType.PARTICIPANT_LEFT, now, participant_id
            )

    def start_voting(self, session_id: str, requester_id: str, story_id: str) -> Session:
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            voting.require_facilitator(session, requester_id, "start voting")
            voting.start_voting(session, story_id, now)
            return self._commit(
                session, SessionEventType.VOTING_STARTED, now, requester_id, story_id
            )

    def submit_vote(
        self, session_id: str, participant_id: str, story_id: str, value: object
    ) -> Session:
        vote = parse_vote(value)
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            voting.submit_vote(
                session,
                participant_id,
                story_id,
                vote,
                now,
                enforce_scale=self.enforce_vote_scale,
            )
            return self._commit(
                session, SessionEventType.VOTE_SUBMITTED, now, participant_id, story_id
            )

    def reveal_votes(self, session_id: str, requester_id: str, story_id: str) -> Session:
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            voting.require_facilitator(session, requester_id, "reveal votes")
            voting.reveal_votes(session, story_id, now)
            return self._commit(
                session, SessionEventType.VOTES_REVEALED, now, requester_id, story_id
            )

    def finalize_estimate(
        self, session_id: str, requester_id: str, story_id: str, estimate: object
    ) -> Session:
        final_estimate = parse_vote(estimate)
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            voting.require_facilitator(session, requester_id, "finalize estimates")
            voting.finalize_estimate(session, story_id, final_estimate, now)
            return self._commit(
                session, SessionEventType.ESTIMATE_FINALIZED, now, requester_id, story_id
            )

    def revote_story(self, session_id: str, requester_id: str, story_id: str) -> Session:
        with self._transaction() as now:
            session = self._live_session(session_id, now)
            voting.require_facilitator(session, requester_id, "start revoting")
            voting.revote_story(session, story_id, now)
            return self._commit(
                session, SessionEventType.REVOTE_STARTED, now, requester_id, story_id
            )

    def get_all_sessions(self) -> list[Session]:
        """Return copies of every non-expired session."""
        with self._lock:
            now = self.clock()
            return [
                deepcopy(session)
                for session in self._sessions.values()
                if not session.is_expired(now)
            ]

    def delete_session(self, session_id: str) -> bool:
        with self._transaction() as now:
            if session_id not in self._sessions:
                return False
            self._discard(session_id, SessionEventType.SESSION_DELETED, now)
        _logger.info("Session deleted: id=%s", session_id)
        return True

    def clear_all_sessions(self) -> None:
        """Drop every session without notifying listeners; used to reset state."""
        with self._lock:
            self._outbox = [
                item for item in self._outbox if isinstance(item, _SnapshotWrite)
            ]
            for session_id in list(self._sessions):
                self._forget_snapshot(session_id)
            self._sessions.clear()
            self._ids_by_code.clear()
        self._drain()

    def purge_expired(self, now: datetime | None = None) -> list[str]:
        """Delete every session whose expiry time has passed and return their ids."""
        with self._transaction() as current:
            moment = now or current
            expired = [
                session.id
                for session in self._sessions.values()
                if session.is_expired(moment)
            ]
            for session_id in expired:
                self._discard(session_id, SessionEventType.SESSION_EXPIRED, moment)
        return expired

    def restore(self, sessions: Iterable[Session]) -> int:
        """Load previously persisted sessions, skipping expired or clashing ones."""
        restored = 0
        with self._lock:
            now = self.clock()
            for session in sessions:
                if session.is_expired(now):
                    continue
                if session.id in self._sessions or session.code in self._ids_by_code:
                    continue
                self._sessions[session.id] = deepcopy(session)
                self._ids_by_code[session.code] = session.id
                restored += 1
        if restored:
            _logger.info("Restored %s sessions from snapshots", restored)
        return restored

    @contextmanager
    def _transaction(self) -> Iterator[datetime]:
        try:
            with self._lock:
                yield self.clock()
        finally:
            self._drain()

    def _live_session(self, session_id: str, now: datetime) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError()
        if session.is_expired(now):
            self._discard(session.id, SessionEventType.SESSION_EXPIRED, now)
            raise SessionNotFoundError("Session has expired")
        return session

    def _unique_code(self) -> str:
        for _ in range(self.max_code_attempts):
            code = generate_session_code()
            if code not in self._ids_by_code:
                return code
        raise RuntimeError("Unable to generate unique session code")

    def _commit(  # noqa: PLR0913
        self,
        session: Session,
        event_type: SessionEventType,
        now: datetime,
        participant_id: str | None = None,
        story_id: str | None = None,
    ) -> Session:
        snapshot = deepcopy(session)
        if self.snapshot_repository is not None:
            self._outbox.append(_SnapshotWrite(session.id, deepcopy(snapshot)))
        self._outbox.append(
            SessionEvent(
                type=event_type,
                session_id=session.id,
                occurred_at=now,
                session=deepcopy(snapshot),
                participant_id=participant_id,
                story_id=story_id,
            )
        )
        return snapshot

    def _discard(
        self, session_id: str, event_type: SessionEventType, now: datetime
    ) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        if self._ids_by_code.get(session.code) == session_id:
            del self._ids_by_code[session.code]
        self._forget_snapshot(session_id)
        self._outbox.append(
            SessionEvent(type=event_type, session_id=session_id, occurred_at=now)
        )

    def _forget_snapshot(self, session_id: str) -> None:
        if self.snapshot_repository is not None:
            self._outbox.append(_SnapshotWrite(session_id, None))

    def _drain(self) -> None:
        while self._drain_lock.acquire(blocking=False):
            try:
                with self._lock:
                    pending, self._outbox = self._outbox, []
                for item in pending:
                    self._deliver(item)
            finally:
                self._drain_lock.release()
            with self._lock:
                if not self._outbox:
                    return

    def _deliver(self, item: SessionEvent | _SnapshotWrite) -> None:
        if isinstance(item, SessionEvent):
            if self.publisher is None:
                return
            try:
                self.publisher.publish(item)
            except Exception:
                _logger.exception(
                    "Failed to publish session event",
                    extra={"session_id": item.session_id, "event_type": item.type},
                )
            return
        if self.snapshot_repository is None:
            return
        try:
            if item.snapshot is None:
                self.snapshot_repository.delete_session(item.session_id)
            else:
                self.snapshot_repository.save_session(item.snapshot)
        except Exception:
            _logger.exception(
                "Failed to write session snapshot", extra={"session_id": item.session_id}
            )


def _resolve_scale(scale: EstimationScale | str) -> EstimationScale:
    try:
        return EstimationScale(scale)
    except ValueError as exc:
        raise ValidationError(f"Unknown estimation scale: {scale}") from exc


def _normalize_code(code: str) -> str:
    return code.strip().upper() if isinstance(code, str) else ""
