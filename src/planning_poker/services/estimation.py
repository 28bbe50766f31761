"""Estimation math over submitted votes."""

import re
import statistics
from collections import Counter
from collections.abc import Iterable

from planning_poker.domain.estimation import ConsensusLevel, StoryStats, VoteAnalysis
from planning_poker.domain.models import NumericVote, Story, StoryStatus, TokenVote, VoteValue

STRONG_CONSENSUS_SHARE = 0.75
MODERATE_CONSENSUS_SHARE = 0.5
WEAK_CONSENSUS_MAX_UNIQUE = 3

_NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")

_CONSENSUS_SUMMARIES = {
    ConsensusLevel.STRONG: "Strong agreement. The team is aligned on this estimate.",
    ConsensusLevel.MODERATE: "Most of the team agrees. A quick discussion may help.",
    ConsensusLevel.WEAK: "Votes are split across a few values. Discuss before finalizing.",
    ConsensusLevel.NO_CONSENSUS: "Votes are widely spread. Consider discussing and re-voting.",
    ConsensusLevel.NO_VOTES: "No votes submitted yet.",
}


def numeric_votes(votes: Iterable[VoteValue]) -> list[float]:
    """Return the positive numeric votes; symbolic tokens are skipped, not coerced."""
    values: list[float] = []
    for vote in votes:
        match vote:
            case NumericVote(value=number) if number > 0:
                values.append(number)
            case NumericVote() | TokenVote():
                continue
    return values


def calculate_average(votes: Iterable[VoteValue]) -> float | None:
    values = numeric_votes(votes)
    if not values:
        return None
    return sum(values) / len(values)


def calculate_median(votes: Iterable[VoteValue]) -> float | None:
    values = numeric_votes(votes)
    if not values:
        return None
    return statistics.median(values)


def suggest_estimate(votes: Iterable[VoteValue]) -> int | float | str | None:
    """Return the most frequent vote; ties go to the value seen first."""
    tally = Counter(str(vote) for vote in votes)
    if not tally:
        return None
    top_count = max(tally.values())
    winner = next(label for label, count in tally.items() if count == top_count)
    return _as_number(winner)


def classify_consensus(votes: list[VoteValue]) -> ConsensusLevel:
    if not votes:
        return ConsensusLevel.NO_VOTES
    tally = Counter(str(vote) for vote in votes)
    share = max(tally.values()) / len(votes)
    if share >= STRONG_CONSENSUS_SHARE:
        return ConsensusLevel.STRONG
    if share >= MODERATE_CONSENSUS_SHARE:
        return ConsensusLevel.MODERATE
    if len(tally) <= WEAK_CONSENSUS_MAX_UNIQUE:
        return ConsensusLevel.WEAK
    return ConsensusLevel.NO_CONSENSUS


def calculate_disagreement(votes: Iterable[VoteValue]) -> float:
    """Coefficient of variation of the numeric votes, as a percentage."""
    values = numeric_votes(votes)
    if len(values) < 2:  # noqa: PLR2004
        return 0.0
    mean = statistics.fmean(values)
    return round(statistics.pstdev(values) / mean * 100, 1)


def analyze_votes(votes: Iterable[VoteValue]) -> VoteAnalysis:
    """Build the reporting view of a set of revealed votes."""
    collected = list(votes)
    distribution = dict(Counter(str(vote) for vote in collected))
    consensus = classify_consensus(collected)
    average = calculate_average(collected)
    median = calculate_median(collected)
    return VoteAnalysis(
        total_votes=len(collected),
        distribution=distribution,
        unique_votes=len(distribution),
        consensus=consensus,
        suggestion=suggest_estimate(collected),
        average=round(average, 1) if average is not None else None,
        median=median,
        disagreement=calculate_disagreement(collected),
        summary=_CONSENSUS_SUMMARIES[consensus],
    )


def calculate_story_stats(stories: Iterable[Story]) -> StoryStats:
    """Count stories by status and total the numeric final estimates."""
    stories = list(stories)
    by_status = Counter(story.status for story in stories)
    points = numeric_votes(
        story.final_estimate
        for story in stories
        if story.status is StoryStatus.COMPLETED and story.final_estimate is not None
    )
    return StoryStats(
        total_stories=len(stories),
        completed_stories=by_status[StoryStatus.COMPLETED],
        pending_stories=by_status[StoryStatus.PENDING],
        voting_stories=by_status[StoryStatus.VOTING],
        total_story_points=sum(points),
        average_story_points=sum(points) / len(points) if points else None,
    )


def _as_number(label: str) -> int | float | str:
    if not _NUMBER_PATTERN.match(label):
        return label
    number = float(label)
    return int(number) if number.is_integer() else number
