"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from swipe_match.api.models import SessionResponse, serialize_statistics

if TYPE_CHECKING:
    from swipe_match.containers import AppContainer

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


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(request: Request, limit: int = 20) -> dict[str, object]:
    """Return recently created sessions."""
    container: AppContainer = request.app.state.container
    sessions = container.session_manager.list_recent(limit)
    return {
        "sessions": [
            SessionResponse.from_record(session).model_dump(mode="json")
            for session in sessions
        ]
    }


@router.get("/sessions/{session_id}/stats", dependencies=[Depends(require_admin)])
async def session_stats(session_id: UUID, request: Request) -> dict[str, object]:
    """Return vote totals across every round of a session."""
    container: AppContainer = request.app.state.container
    return serialize_statistics(
        container.stats_service.session_statistics(session_id)
    )
