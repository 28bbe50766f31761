"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from planning_poker.api.admin import router as admin_router
from planning_poker.api.models import (
    AddStoryRequest,
    CreateSessionRequest,
    FinalizeEstimateRequest,
    JoinSessionRequest,
    PresenceRequest,
    SubmitVoteRequest,
)
from planning_poker.app_logging import configure_logging
from planning_poker.containers import AppContainer
from planning_poker.domain.errors import (
    DuplicateNameError,
    InvalidStateError,
    NotFoundError,
    SessionError,
    SessionNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from planning_poker.domain.models import Session, SessionStatus, StoryStatus
from planning_poker.domain.snapshots import session_to_payload
from planning_poker.services.estimation import analyze_votes
from planning_poker.services.export import (
    build_session_summary,
    export_to_csv,
    export_to_text,
)
from planning_poker.services.registry import SessionMembership, SessionRegistry
from planning_poker.services.voting import require_story

_ERROR_STATUS: list[tuple[type[SessionError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (ValidationError, 422),
    (DuplicateNameError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
]


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        if state_container.snapshot_repository is not None:
            try:
                snapshots = await asyncio.to_thread(
                    state_container.snapshot_repository.load_sessions
                )
                state_container.registry.restore(snapshots)
            except Exception:
                logger.exception("Failed to restore session snapshots")
        state_container.sweeper.start()
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(SessionError)
    async def session_error_handler(_: Request, exc: SessionError) -> JSONResponse:
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": exc.message, "code": exc.kind},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    def create_session(body: CreateSessionRequest, request: Request) -> dict[str, object]:
        membership = _registry(request).create_session(
            body.title, body.facilitator_name, body.scale
        )
        return _membership_payload(membership)

    @app.post("/sessions/join")
    def join_session(body: JoinSessionRequest, request: Request) -> dict[str, object]:
        membership = _registry(request).join_session(
            body.session_code, body.participant_name
        )
        return _membership_payload(membership)

    @app.get("/sessions/code/{code}")
    def get_session_by_code(code: str, request: Request) -> dict[str, object]:
        return _session_payload(_registry(request).get_session_by_code(code))

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, request: Request) -> dict[str, object]:
        return _session_payload(_registry(request).get_session(session_id))

    @app.post("/sessions/{session_id}/stories", status_code=status.HTTP_201_CREATED)
    def add_story(
        session_id: str,
        body: AddStoryRequest,
        request: Request,
        x_participant_id: str = Header(),
    ) -> dict[str, object]:
        session = _registry(request).add_story(
            session_id, x_participant_id, body.title, body.description
        )
        return _session_payload(session)

    @app.post("/sessions/{session_id}/stories/{story_id}/start")
    def start_voting(
        session_id: str, story_id: str, request: Request, x_participant_id: str = Header()
    ) -> dict[str, object]:
        session = _registry(request).start_voting(session_id, x_participant_id, story_id)
        return _session_payload(session)

    @app.post("/sessions/{session_id}/stories/{story_id}/vote")
    def submit_vote(
        session_id: str,
        story_id: str,
        body: SubmitVoteRequest,
        request: Request,
        x_participant_id: str = Header(),
    ) -> dict[str, object]:
        session = _registry(request).submit_vote(
            session_id, x_participant_id, story_id, body.vote
        )
        return _session_payload(session)

    @app.post("/sessions/{session_id}/stories/{story_id}/reveal")
    def reveal_votes(
        session_id: str, story_id: str, request: Request, x_participant_id: str = Header()
    ) -> dict[str, object]:
        session = _registry(request).reveal_votes(session_id, x_participant_id, story_id)
        return _session_payload(session)

    @app.post("/sessions/{session_id}/stories/{story_id}/finalize")
    def finalize_estimate(
        session_id: str,
        story_id: str,
        body: FinalizeEstimateRequest,
        request: Request,
        x_participant_id: str = Header(),
    ) -> dict[str, object]:
        session = _registry(request).finalize_estimate(
            session_id, x_participant_id, story_id, body.estimate
        )
        return _session_payload(session)

    @app.post("/sessions/{session_id}/stories/{story_id}/revote")
    def revote_story(
        session_id: str, story_id: str, request: Request, x_participant_id: str = Header()
    ) -> dict[str, object]:
        session = _registry(request).revote_story(session_id, x_participant_id, story_id)
        return _session_payload(session)

    @app.get("/sessions/{session_id}/stories/{story_id}/analysis")
    def story_analysis(
        session_id: str, story_id: str, request: Request
    ) -> dict[str, object]:
        session = _registry(request).get_session(session_id)
        if session is None:
            raise SessionNotFoundError()
        story = require_story(session, story_id)
        revealed = (
            session.status is SessionStatus.REVEALING
            and session.current_story_id == story.id
        )
        if not revealed and story.status is not StoryStatus.COMPLETED:
            raise InvalidStateError("Votes are hidden until they are revealed")
        return {"analysis": asdict(analyze_votes(story.votes.values()))}

    @app.put("/sessions/{session_id}/participants/{participant_id}/presence")
    def update_presence(
        session_id: str, participant_id: str, body: PresenceRequest, request: Request
    ) -> dict[str, object]:
        session = _registry(request).update_participant_status(
            session_id, participant_id, body.is_online
        )
        return _session_payload(session)

    @app.delete("/sessions/{session_id}/participants/{participant_id}")
    def remove_participant(
        session_id: str, participant_id: str, request: Request
    ) -> dict[str, object]:
        session = _registry(request).remove_participant(session_id, participant_id)
        if session is None:
            return {"session": None, "deleted": True}
        return _session_payload(session)

    @app.get("/sessions/{session_id}/stats")
    def session_stats(session_id: str, request: Request) -> dict[str, object]:
        session = _registry(request).get_session(session_id)
        if session is None:
            raise SessionNotFoundError()
        summary = build_session_summary(session)
        return {"stats": asdict(summary.stats), "duration": summary.duration}

    @app.get("/sessions/{session_id}/export")
    def export_session(
        session_id: str,
        request: Request,
        export_format: str = Query(default="csv", alias="format"),
    ) -> PlainTextResponse:
        session = _registry(request).get_session(session_id)
        if session is None:
            raise SessionNotFoundError()
        summary = build_session_summary(session)
        if export_format == "csv":
            export = export_to_csv(summary)
            media_type = "text/csv"
        elif export_format == "text":
            export = export_to_text(summary)
            media_type = "text/plain"
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Export format must be csv or text",
            )
        return PlainTextResponse(
            export.data,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
        )

    return app


def _registry(request: Request) -> SessionRegistry:
    container: AppContainer = request.app.state.container
    return container.registry


def _status_for(exc: SessionError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _session_payload(session: Session | None) -> dict[str, object]:
    if session is None:
        raise SessionNotFoundError()
    return {"session": session_to_payload(session)}


def _membership_payload(membership: SessionMembership) -> dict[str, object]:
    return {
        "session": session_to_payload(membership.session),
        "participant_id": membership.participant_id,
    }
