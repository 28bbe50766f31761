"""Domain models for planning poker sessions."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from planning_poker.domain.errors import ValidationError


class ParticipantRole(StrEnum):
    FACILITATOR = "facilitator"
    MEMBER = "member"


class SessionStatus(StrEnum):
    WAITING = "waiting"
    VOTING = "voting"
    REVEALING = "revealing"


class StoryStatus(StrEnum):
    PENDING = "pending"
    VOTING = "voting"
    COMPLETED = "completed"


class EstimationScale(StrEnum):
    FIBONACCI = "FIBONACCI"
    T_SHIRT = "T_SHIRT"
    POWERS_OF_2 = "POWERS_OF_2"


@dataclass(frozen=True)
class NumericVote:
    """A vote that carries a number, e.g. a story point value."""

    value: int | float

    @property
    def raw(self) -> int | float:
        return self.value

    def __str__(self) -> str:
        if isinstance(self.value, float) and self.value.is_integer():
            return str(int(self.value))
        return str(self.value)


@dataclass(frozen=True)
class TokenVote:
    """A symbolic vote such as ``?``, ``∞`` or a T-shirt size."""

    token: str

    @property
    def raw(self) -> str:
        return self.token

    def __str__(self) -> str:
        return self.token


VoteValue = NumericVote | TokenVote


def parse_vote(raw: object) -> VoteValue:
    """Convert a transport value into a vote, rejecting anything but str or number."""
    if isinstance(raw, bool):
        raise ValidationError("Vote must be a string or a number")
    if isinstance(raw, int | float):
        if not math.isfinite(raw):
            raise ValidationError("Vote must be a finite number")
        return NumericVote(raw)
    if isinstance(raw, str):
        token = raw.strip()
        if not token:
            raise ValidationError("Vote must not be empty")
        return TokenVote(token)
    raise ValidationError("Vote must be a string or a number")


ESTIMATION_SCALES: dict[EstimationScale, tuple[VoteValue, ...]] = {
    EstimationScale.FIBONACCI: (
        *(NumericVote(value) for value in (1, 2, 3, 5, 8, 13, 21)),
        TokenVote("?"),
        TokenVote("∞"),
    ),
    EstimationScale.T_SHIRT: (
        *(TokenVote(size) for size in ("XS", "S", "M", "L", "XL", "XXL")),
        TokenVote("?"),
        TokenVote("∞"),
    ),
    EstimationScale.POWERS_OF_2: (
        *(NumericVote(value) for value in (1, 2, 4, 8, 16, 32, 64)),
        TokenVote("?"),
        TokenVote("∞"),
    ),
}


def is_valid_estimation_value(value: VoteValue, scale: EstimationScale) -> bool:
    """Return true when the vote is one of the scale's cards."""
    return value in ESTIMATION_SCALES[scale]


@dataclass
class Participant:
    """A person taking part in a session."""

    id: str
    name: str
    role: ParticipantRole
    is_online: bool
    joined_at: datetime

    @property
    def is_facilitator(self) -> bool:
        return self.role is ParticipantRole.FACILITATOR


@dataclass
class Story:
    """One estimable unit of work."""

    id: str
    title: str
    created_at: datetime
    description: str | None = None
    status: StoryStatus = StoryStatus.PENDING
    votes: dict[str, VoteValue] = field(default_factory=dict)
    final_estimate: VoteValue | None = None
    completed_at: datetime | None = None


@dataclass
class Session:
    """An estimation room owned by the session registry."""

    id: str
    code: str
    title: str
    scale: EstimationScale
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    status: SessionStatus = SessionStatus.WAITING
    participants: list[Participant] = field(default_factory=list)
    stories: list[Story] = field(default_factory=list)
    current_story_id: str | None = None

    def find_participant(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.id == participant_id), None)

    def find_story(self, story_id: str) -> Story | None:
        return next((s for s in self.stories if s.id == story_id), None)

    def current_story(self) -> Story | None:
        if self.current_story_id is None:
            return None
        return self.find_story(self.current_story_id)

    def is_expired(self, now: datetime) -> bool:
        """A session stays live through the instant it expires."""
        return now > self.expires_at
