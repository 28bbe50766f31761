"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from planning_poker.domain.snapshots import session_to_payload
from planning_poker.services.sweeper import sweep_expired_sessions

if TYPE_CHECKING:
    from planning_poker.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/sessions", dependencies=[Depends(require_admin)])
def list_sessions(request: Request) -> dict[str, object]:
    """Return every live session."""
    container: AppContainer = request.app.state.container
    sessions = container.registry.get_all_sessions()
    return {"sessions": [session_to_payload(session) for session in sessions]}


@router.delete("/sessions/{session_id}", dependencies=[Depends(require_admin)])
def delete_session(session_id: str, request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    if not container.registry.delete_session(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"deleted": session_id}


@router.delete("/sessions", dependencies=[Depends(require_admin)])
def clear_sessions(request: Request) -> dict[str, str]:
    """Drop every session in the registry."""
    container: AppContainer = request.app.state.container
    container.reset()
    return {"status": "cleared"}


@router.post("/sweep", dependencies=[Depends(require_admin)])
def sweep(request: Request) -> dict[str, object]:
    """Run one expiry sweep immediately."""
    container: AppContainer = request.app.state.container
    return {"expired": sweep_expired_sessions(container.registry)}


@router.get("/sweeper", dependencies=[Depends(require_admin)])
def sweeper_status(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    return {
        "running": container.sweeper.is_running,
        "interval_seconds": container.sweeper.interval_seconds,
    }
