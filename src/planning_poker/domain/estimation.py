"""Domain models for vote analysis and story statistics."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from planning_poker.domain.models import VoteValue


class ConsensusLevel(StrEnum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    NO_CONSENSUS = "no-consensus"
    NO_VOTES = "no-votes"


@dataclass(frozen=True)
class VoteAnalysis:
    """Summary of the revealed votes for one story."""

    total_votes: int
    distribution: dict[str, int]
    unique_votes: int
    consensus: ConsensusLevel
    suggestion: int | float | str | None
    average: float | None
    median: float | None
    disagreement: float
    summary: str


@dataclass(frozen=True)
class StoryStats:
    """Progress counters across the stories of a session."""

    total_stories: int
    completed_stories: int
    pending_stories: int
    voting_stories: int
    total_story_points: float
    average_story_points: float | None


@dataclass(frozen=True)
class StorySummary:
    title: str
    final_estimate: VoteValue | None
    votes: dict[str, VoteValue]


@dataclass(frozen=True)
class SessionSummary:
    """Export-ready view of a session."""

    session_id: str
    title: str
    total_stories: int
    completed_stories: int
    participants: list[str]
    created_at: datetime
    completed_at: datetime | None
    stories: list[StorySummary]
    stats: StoryStats
    duration: str


@dataclass(frozen=True)
class ExportData:
    format: str
    data: str
    filename: str
