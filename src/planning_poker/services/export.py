"""Session summaries and CSV/text export."""

import csv
import io
from datetime import UTC, date, datetime

from planning_poker.domain.estimation import ExportData, SessionSummary, StorySummary
from planning_poker.domain.models import Session, StoryStatus
from planning_poker.services.estimation import calculate_story_stats

NOT_ESTIMATED = "Not estimated"


def build_session_summary(session: Session) -> SessionSummary:
    """Collect the export view of a session."""
    completed = [story for story in session.stories if story.status is StoryStatus.COMPLETED]
    completed_at = None
    if session.stories and len(completed) == len(session.stories):
        completed_at = max(
            (story.completed_at for story in completed if story.completed_at),
            default=None,
        )
    return SessionSummary(
        session_id=session.id,
        title=session.title,
        total_stories=len(session.stories),
        completed_stories=len(completed),
        participants=[participant.name for participant in session.participants],
        created_at=session.created_at,
        completed_at=completed_at,
        stories=[
            StorySummary(
                title=story.title,
                final_estimate=story.final_estimate,
                votes=dict(story.votes),
            )
            for story in session.stories
        ],
        stats=calculate_story_stats(session.stories),
        duration=format_duration(session.created_at, completed_at or session.updated_at),
    )


def export_to_csv(summary: SessionSummary, today: date | None = None) -> ExportData:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Story Title", "Final Estimate", *summary.participants, "Votes"])
    for story in summary.stories:
        votes = ", ".join(str(vote) for vote in story.votes.values())
        writer.writerow(
            [
                story.title,
                _estimate_label(story),
                *(
                    str(story.votes[name]) if name in story.votes else "No vote"
                    for name in summary.participants
                ),
                votes or "No votes",
            ]
        )
    return ExportData(
        format="csv",
        data=buffer.getvalue().rstrip("\n"),
        filename=_filename(summary, "csv", today),
    )


def export_to_text(summary: SessionSummary, today: date | None = None) -> ExportData:
    lines = [
        "Planning Poker Session Results",
        f"Session: {summary.title}",
        f"Date: {summary.created_at.date().isoformat()}",
        f"Participants: {', '.join(summary.participants)}",
        f"Total Stories: {summary.total_stories}",
        f"Completed Stories: {summary.completed_stories}",
        f"Total Story Points: {summary.stats.total_story_points:g}",
        f"Duration: {summary.duration}",
        "",
        "Story Estimates:",
        "=" * 50,
    ]
    for index, story in enumerate(summary.stories, start=1):
        lines.append(f"{index}. {story.title}")
        lines.append(f"   Final Estimate: {_estimate_label(story)}")
        lines.append("   Votes:")
        lines.extend(f"     {name}: {vote}" for name, vote in story.votes.items())
        lines.append("")
    return ExportData(
        format="text",
        data="\n".join(lines),
        filename=_filename(summary, "txt", today),
    )


def format_duration(start: datetime, end: datetime | None = None) -> str:
    """Format elapsed time as ``1h 5m`` or ``12m``."""
    finish = end or datetime.now(tz=UTC)
    minutes = max(int((finish - start).total_seconds() // 60), 0)
    hours, remainder = divmod(minutes, 60)
    if hours:
        return f"{hours}h {remainder}m"
    return f"{minutes}m"


def _estimate_label(story: StorySummary) -> str:
    if story.final_estimate is None:
        return NOT_ESTIMATED
    return str(story.final_estimate)


def _filename(summary: SessionSummary, extension: str, today: date | None) -> str:
    day = today or datetime.now(tz=UTC).date()
    return f"planning_poker_{summary.session_id}_{day.isoformat()}.{extension}"
