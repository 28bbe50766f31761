"""JSON-ready encoding of sessions for transport and snapshot storage."""

from datetime import datetime

from planning_poker.domain.models import (
    EstimationScale,
    Participant,
    ParticipantRole,
    Session,
    SessionStatus,
    Story,
    StoryStatus,
    VoteValue,
    parse_vote,
)


def session_to_payload(session: Session) -> dict[str, object]:
    """Encode a session as plain JSON types."""
    return {
        "id": session.id,
        "code": session.code,
        "title": session.title,
        "scale": session.scale.value,
        "status": session.status.value,
        "participants": [
            {
                "id": participant.id,
                "name": participant.name,
                "role": participant.role.value,
                "is_online": participant.is_online,
                "joined_at": participant.joined_at.isoformat(),
            }
            for participant in session.participants
        ],
        "stories": [_story_to_payload(story) for story in session.stories],
        "current_story_id": session.current_story_id,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
        "expires_at": session.expires_at.isoformat(),
    }


def session_from_payload(payload: dict[str, object]) -> Session:
    """Rebuild a session from :func:`session_to_payload` output."""
    participants = [
        Participant(
            id=str(row["id"]),
            name=str(row["name"]),
            role=ParticipantRole(row["role"]),
            is_online=bool(row["is_online"]),
            joined_at=datetime.fromisoformat(str(row["joined_at"])),
        )
        for row in payload.get("participants", [])
    ]
    stories = [_story_from_payload(row) for row in payload.get("stories", [])]
    return Session(
        id=str(payload["id"]),
        code=str(payload["code"]),
        title=str(payload["title"]),
        scale=EstimationScale(payload["scale"]),
        status=SessionStatus(payload["status"]),
        participants=participants,
        stories=stories,
        current_story_id=payload.get("current_story_id"),
        created_at=datetime.fromisoformat(str(payload["created_at"])),
        updated_at=datetime.fromisoformat(str(payload["updated_at"])),
        expires_at=datetime.fromisoformat(str(payload["expires_at"])),
    )


def _story_to_payload(story: Story) -> dict[str, object]:
    return {
        "id": story.id,
        "title": story.title,
        "description": story.description,
        "status": story.status.value,
        "votes": {name: vote.raw for name, vote in story.votes.items()},
        "final_estimate": _raw_or_none(story.final_estimate),
        "created_at": story.created_at.isoformat(),
        "completed_at": story.completed_at.isoformat() if story.completed_at else None,
    }


def _story_from_payload(row: dict[str, object]) -> Story:
    votes = row.get("votes") or {}
    final_estimate = row.get("final_estimate")
    completed_at = row.get("completed_at")
    return Story(
        id=str(row["id"]),
        title=str(row["title"]),
        description=row.get("description"),
        status=StoryStatus(row["status"]),
        votes={str(name): parse_vote(raw) for name, raw in votes.items()},
        final_estimate=parse_vote(final_estimate) if final_estimate is not None else None,
        created_at=datetime.fromisoformat(str(row["created_at"])),
        completed_at=datetime.fromisoformat(str(completed_at)) if completed_at else None,
    )


def _raw_or_none(value: VoteValue | None) -> int | float | str | None:
    return value.raw if value is not None else None
