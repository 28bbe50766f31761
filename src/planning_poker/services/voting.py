"""Story and voting state transitions.

Every function here validates first and mutates second, so a raised error
leaves the session exactly as it was. Locking and lookups belong to the
registry; these functions only see one session.
"""

from datetime import datetime

from planning_poker.domain.errors import (
    InvalidStateError,
    ParticipantNotFoundError,
    StoryNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from planning_poker.domain.models import (
    Participant,
    Session,
    SessionStatus,
    Story,
    StoryStatus,
    VoteValue,
    is_valid_estimation_value,
)
from planning_poker.services.identifiers import generate_story_id

SESSION_TITLE_MAX_LENGTH = 100
PARTICIPANT_NAME_MAX_LENGTH = 50
STORY_TITLE_MAX_LENGTH = 200


def validate_text(value: str, label: str, max_length: int) -> str:
    """Return the trimmed value or raise when it is empty or too long."""
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned or len(cleaned) > max_length:
        raise ValidationError(f"{label} must be between 1 and {max_length} characters")
    return cleaned


def require_facilitator(session: Session, requester_id: str, action: str) -> Participant:
    """Return the requester when they facilitate the session."""
    participant = session.find_participant(requester_id)
    if participant is None or not participant.is_facilitator:
        raise UnauthorizedError(f"Only facilitators can {action}")
    return participant


def require_story(session: Session, story_id: str) -> Story:
    story = session.find_story(story_id)
    if story is None:
        raise StoryNotFoundError()
    return story


def add_story(
    session: Session, title: str, description: str | None, now: datetime
) -> Story:
    cleaned_title = validate_text(title, "Story title", STORY_TITLE_MAX_LENGTH)
    cleaned_description = description.strip() if description else None
    story = Story(
        id=generate_story_id(),
        title=cleaned_title,
        description=cleaned_description or None,
        created_at=now,
    )
    session.stories.append(story)
    session.updated_at = now
    return story


def start_voting(session: Session, story_id: str, now: datetime) -> Story:
    """Open voting on a story.

    A story that was being voted on goes back to pending, so only one story
    is ever in voting status.
    """
    story = require_story(session, story_id)
    for other in session.stories:
        if other.id != story.id and other.status is StoryStatus.VOTING:
            other.status = StoryStatus.PENDING
            other.votes = {}
    _open_round(story)
    session.status = SessionStatus.VOTING
    session.current_story_id = story.id
    session.updated_at = now
    return story


def submit_vote(  # noqa: PLR0913
    session: Session,
    participant_id: str,
    story_id: str,
    vote: VoteValue,
    now: datetime,
    enforce_scale: bool = False,
) -> Story:
    """Record a participant's vote; a later vote replaces an earlier one."""
    participant = session.find_participant(participant_id)
    if participant is None:
        raise ParticipantNotFoundError()
    story = require_story(session, story_id)
    if story.status is not StoryStatus.VOTING:
        raise InvalidStateError("Voting is not active for this story")
    if enforce_scale and not is_valid_estimation_value(vote, session.scale):
        raise ValidationError(f"Vote {vote} is not on the {session.scale} scale")
    story.votes[participant.name] = vote
    session.updated_at = now
    return story


def withdraw_votes(session: Session, participant: Participant) -> None:
    """Drop a departing participant's votes from stories that are still open.

    Completed stories keep their votes as the record of that round.
    """
    for story in session.stories:
        if story.status is not StoryStatus.COMPLETED:
            story.votes.pop(participant.name, None)


def reveal_votes(session: Session, story_id: str, now: datetime) -> Story:
    story = _require_active_story(session, story_id)
    session.status = SessionStatus.REVEALING
    session.updated_at = now
    return story


def finalize_estimate(
    session: Session, story_id: str, estimate: VoteValue, now: datetime
) -> Story:
    story = _require_active_story(session, story_id)
    story.status = StoryStatus.COMPLETED
    story.final_estimate = estimate
    story.completed_at = now
    session.status = SessionStatus.WAITING
    session.current_story_id = None
    session.updated_at = now
    return story


def revote_story(session: Session, story_id: str, now: datetime) -> Story:
    """Reopen a completed story, discarding its votes and estimate."""
    story = require_story(session, story_id)
    if story.status is not StoryStatus.COMPLETED:
        raise InvalidStateError("Can only revote on completed stories")
    busy = (
        session.current_story_id is not None and session.current_story_id != story.id
    ) or any(
        other.status is StoryStatus.VOTING for other in session.stories if other is not story
    )
    if busy:
        raise InvalidStateError("Another story is currently being voted on")
    _open_round(story)
    session.status = SessionStatus.VOTING
    session.current_story_id = story.id
    session.updated_at = now
    return story


def _open_round(story: Story) -> None:
    story.status = StoryStatus.VOTING
    story.votes = {}
    story.final_estimate = None
    story.completed_at = None


def _require_active_story(session: Session, story_id: str) -> Story:
    story = require_story(session, story_id)
    if story.status is not StoryStatus.VOTING or session.current_story_id != story.id:
        raise InvalidStateError("Voting is not active for this story")
    return story
