"""Tests for the story and voting transitions on a single session."""

from datetime import UTC, datetime, timedelta

import pytest

from planning_poker.domain.errors import (
    InvalidStateError,
    ParticipantNotFoundError,
    StoryNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from planning_poker.domain.models import (
    EstimationScale,
    NumericVote,
    Participant,
    ParticipantRole,
    Session,
    SessionStatus,
    StoryStatus,
    TokenVote,
)
from planning_poker.services import voting

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def _session() -> Session:
    return Session(
        id="session_1",
        code="ABC123",
        title="Sprint 12",
        scale=EstimationScale.FIBONACCI,
        created_at=NOW,
        updated_at=NOW,
        expires_at=NOW + timedelta(hours=2),
        participants=[
            Participant(
                id="p-alice",
                name="Alice",
                role=ParticipantRole.FACILITATOR,
                is_online=True,
                joined_at=NOW,
            ),
            Participant(
                id="p-bob",
                name="Bob",
                role=ParticipantRole.MEMBER,
                is_online=True,
                joined_at=NOW,
            ),
        ],
    )


def test_validate_text_trims() -> None:
    assert voting.validate_text("  Sprint  ", "Session title", 100) == "Sprint"


@pytest.mark.parametrize("value", ["", "   ", "x" * 101, None])
def test_validate_text_rejects_bad_lengths(value: object) -> None:
    with pytest.raises(ValidationError, match="between 1 and 100 characters"):
        voting.validate_text(value, "Session title", 100)  # type: ignore[arg-type]


def test_require_facilitator() -> None:
    session = _session()
    assert voting.require_facilitator(session, "p-alice", "add stories").name == "Alice"
    with pytest.raises(UnauthorizedError, match="Only facilitators can add stories"):
        voting.require_facilitator(session, "p-bob", "add stories")
    with pytest.raises(UnauthorizedError):
        voting.require_facilitator(session, "p-nobody", "add stories")


def test_add_story_keeps_order_and_trims() -> None:
    session = _session()
    first = voting.add_story(session, " Login ", "  ", NOW)
    second = voting.add_story(session, "Signup", "Email flow", NOW)

    assert [story.id for story in session.stories] == [first.id, second.id]
    assert first.title == "Login"
    assert first.description is None
    assert second.description == "Email flow"
    assert first.status is StoryStatus.PENDING
    assert first.votes == {}


def test_start_voting_demotes_other_voting_story() -> None:
    session = _session()
    first = voting.add_story(session, "Login", None, NOW)
    second = voting.add_story(session, "Signup", None, NOW)
    voting.start_voting(session, first.id, NOW)
    voting.submit_vote(session, "p-bob", first.id, NumericVote(5), NOW)

    voting.start_voting(session, second.id, NOW)

    assert first.status is StoryStatus.PENDING
    assert first.votes == {}
    assert second.status is StoryStatus.VOTING
    assert session.current_story_id == second.id
    assert session.status is SessionStatus.VOTING


def test_start_voting_unknown_story() -> None:
    with pytest.raises(StoryNotFoundError):
        voting.start_voting(_session(), "story_missing", NOW)


def test_submit_vote_overwrites_previous_vote() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    voting.start_voting(session, story.id, NOW)

    voting.submit_vote(session, "p-bob", story.id, NumericVote(5), NOW)
    voting.submit_vote(session, "p-bob", story.id, NumericVote(8), NOW)

    assert story.votes == {"Bob": NumericVote(8)}


def test_submit_vote_requires_voting_story() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    with pytest.raises(InvalidStateError, match="Voting is not active"):
        voting.submit_vote(session, "p-bob", story.id, NumericVote(5), NOW)


def test_submit_vote_unknown_participant() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    voting.start_voting(session, story.id, NOW)
    with pytest.raises(ParticipantNotFoundError):
        voting.submit_vote(session, "p-ghost", story.id, NumericVote(5), NOW)


def test_submit_vote_scale_enforcement() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    voting.start_voting(session, story.id, NOW)

    voting.submit_vote(session, "p-bob", story.id, TokenVote("XL"), NOW)
    with pytest.raises(ValidationError):
        voting.submit_vote(
            session, "p-bob", story.id, TokenVote("XL"), NOW, enforce_scale=True
        )
    assert story.votes == {"Bob": TokenVote("XL")}


def test_reveal_and_finalize() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    voting.start_voting(session, story.id, NOW)
    voting.submit_vote(session, "p-bob", story.id, NumericVote(5), NOW)

    voting.reveal_votes(session, story.id, NOW)
    assert session.status is SessionStatus.REVEALING
    assert story.status is StoryStatus.VOTING

    later = NOW + timedelta(minutes=5)
    voting.finalize_estimate(session, story.id, NumericVote(5), later)

    assert story.status is StoryStatus.COMPLETED
    assert story.final_estimate == NumericVote(5)
    assert story.completed_at == later
    assert story.votes == {"Bob": NumericVote(5)}
    assert session.status is SessionStatus.WAITING
    assert session.current_story_id is None


def test_withdraw_votes_spares_completed_stories() -> None:
    session = _session()
    done = voting.add_story(session, "Login", None, NOW)
    voting.start_voting(session, done.id, NOW)
    voting.submit_vote(session, "p-bob", done.id, NumericVote(5), NOW)
    voting.finalize_estimate(session, done.id, NumericVote(5), NOW)
    open_story = voting.add_story(session, "Signup", None, NOW)
    voting.start_voting(session, open_story.id, NOW)
    voting.submit_vote(session, "p-bob", open_story.id, NumericVote(8), NOW)
    voting.submit_vote(session, "p-alice", open_story.id, NumericVote(3), NOW)

    voting.withdraw_votes(session, session.participants[1])

    assert done.votes == {"Bob": NumericVote(5)}
    assert open_story.votes == {"Alice": NumericVote(3)}


def test_reveal_requires_active_story() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    with pytest.raises(InvalidStateError):
        voting.reveal_votes(session, story.id, NOW)
    with pytest.raises(InvalidStateError):
        voting.finalize_estimate(session, story.id, NumericVote(3), NOW)
    assert session.status is SessionStatus.WAITING


def test_revote_resets_completed_story() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    voting.start_voting(session, story.id, NOW)
    voting.submit_vote(session, "p-bob", story.id, NumericVote(5), NOW)
    voting.finalize_estimate(session, story.id, NumericVote(5), NOW)

    voting.revote_story(session, story.id, NOW)

    assert story.status is StoryStatus.VOTING
    assert story.votes == {}
    assert story.final_estimate is None
    assert story.completed_at is None
    assert session.current_story_id == story.id
    assert session.status is SessionStatus.VOTING


def test_revote_rejects_pending_story() -> None:
    session = _session()
    story = voting.add_story(session, "Login", None, NOW)
    with pytest.raises(InvalidStateError, match="completed stories"):
        voting.revote_story(session, story.id, NOW)


def test_revote_rejects_while_another_story_is_voting() -> None:
    session = _session()
    done = voting.add_story(session, "Login", None, NOW)
    other = voting.add_story(session, "Signup", None, NOW)
    voting.start_voting(session, done.id, NOW)
    voting.finalize_estimate(session, done.id, NumericVote(3), NOW)
    voting.start_voting(session, other.id, NOW)

    with pytest.raises(InvalidStateError, match="Another story"):
        voting.revote_story(session, done.id, NOW)
    assert done.status is StoryStatus.COMPLETED
    assert done.final_estimate == NumericVote(3)
