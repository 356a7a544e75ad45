"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from swipe_match.api.admin import router as admin_router
from swipe_match.api.models import (
    CancelRequest,
    CreateSessionRequest,
    MatchResponse,
    RoundOutcomeResponse,
    SessionResponse,
    VoteRequest,
    VoteResponse,
    VotingProgressResponse,
)
from swipe_match.app_logging import configure_logging
from swipe_match.containers import AppContainer
from swipe_match.domain.votes import ItemSnapshot
from swipe_match.errors import (
    CorruptRecordError,
    DuplicateVoteError,
    InvalidConfigError,
    InvalidTransitionError,
    RoundLimitExceededError,
    RoundNotClosedError,
    SessionNotFoundError,
    SessionNotVotableError,
    StaleRoundError,
    StoreUnavailableError,
    SwipeMatchError,
)

_STATUS_BY_ERROR: dict[type[SwipeMatchError], int] = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidConfigError: 422,
    DuplicateVoteError: status.HTTP_409_CONFLICT,
    SessionNotVotableError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    StaleRoundError: status.HTTP_409_CONFLICT,
    RoundLimitExceededError: status.HTTP_409_CONFLICT,
    RoundNotClosedError: status.HTTP_409_CONFLICT,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    CorruptRecordError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(SwipeMatchError)
    async def handle_core_error(request: Request, exc: SwipeMatchError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                "Request failed: %s",
                exc.message,
                extra={"path": request.url.path, "details": exc.details},
            )
        message = exc.message
        if (
            status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
            and container.settings.environment != "local"
        ):
            message = "Internal error"
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "message": message},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        payload: CreateSessionRequest, request: Request
    ) -> SessionResponse:
        """Create a session for a group and open its first round."""
        state_container: AppContainer = request.app.state.container
        manager = state_container.session_manager
        session = manager.create(
            group_id=payload.group_id,
            config=payload.config,
            energy_level=payload.energy_level,
        )
        try:
            started = manager.start(session.id)
        except SwipeMatchError:
            # A session that never opened must not be left pending.
            try:
                manager.cancel(session.id, "start failed")
            except SwipeMatchError:
                logger.warning(
                    "Could not cancel session after failed start",
                    extra={"session_id": str(session.id)},
                    exc_info=True,
                )
            raise
        return SessionResponse.from_record(started)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: UUID, request: Request) -> SessionResponse:
        """Return status, round and, once completed, the winning match."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_manager.get(session_id)
        winner = state_container.match_engine.winning_match(session)
        return SessionResponse.from_record(session, winner)

    @app.post("/sessions/{session_id}/vote", status_code=status.HTTP_201_CREATED)
    async def cast_vote(
        session_id: UUID, payload: VoteRequest, request: Request
    ) -> VoteResponse:
        """Record a vote in the session's open round."""
        state_container: AppContainer = request.app.state.container
        vote = state_container.vote_ledger.cast_vote(
            session_id=session_id,
            voter_id=payload.voter_id,
            item_id=payload.item_id,
            item_type=payload.item_type,
            decision=payload.decision,
            item_snapshot=ItemSnapshot.from_payload(payload.item_snapshot),
        )
        return VoteResponse.from_record(vote)

    @app.get("/sessions/{session_id}/matches")
    async def list_matches(
        session_id: UUID,
        request: Request,
        round: int | None = Query(default=None, ge=1),
    ) -> dict[str, object]:
        """Return the ranked matches of a round, the current round by default."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_manager.get(session_id)
        round_number = session.round_number if round is None else round
        matches = state_container.match_engine.list_matches(session_id, round_number)
        return {
            "session_id": str(session_id),
            "round_number": round_number,
            "matches": [
                MatchResponse.from_record(match).model_dump(mode="json")
                for match in matches
            ],
        }

    @app.get("/sessions/{session_id}/votes")
    async def list_votes(
        session_id: UUID,
        request: Request,
        round: int | None = Query(default=None, ge=1),
    ) -> dict[str, object]:
        """Return the session's votes in cast order, for one round or all."""
        state_container: AppContainer = request.app.state.container
        state_container.session_manager.get(session_id)
        votes = state_container.vote_ledger.list_votes(session_id, round)
        return {
            "session_id": str(session_id),
            "round_number": round,
            "votes": [
                VoteResponse.from_record(vote).model_dump(mode="json")
                for vote in votes
            ],
        }

    @app.post("/sessions/{session_id}/close")
    async def close_round(
        session_id: UUID,
        request: Request,
        round: int | None = Query(default=None, ge=1),
    ) -> RoundOutcomeResponse:
        """Closure trigger for round timers and last-voter notifications."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.round_controller.evaluate(session_id, round)
        return RoundOutcomeResponse.from_outcome(outcome)

    @app.post("/sessions/{session_id}/resume")
    async def resume_round(session_id: UUID, request: Request) -> RoundOutcomeResponse:
        """Settle a round that was closed but never finished."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.round_controller.resume(session_id)
        return RoundOutcomeResponse.from_outcome(outcome)

    @app.post("/sessions/{session_id}/cancel")
    async def cancel_session(
        session_id: UUID, request: Request, payload: CancelRequest | None = None
    ) -> SessionResponse:
        """Cancel a session that has not finished yet."""
        state_container: AppContainer = request.app.state.container
        reason = payload.reason if payload else "cancelled"
        session = state_container.session_manager.cancel(session_id, reason)
        return SessionResponse.from_record(session)

    @app.get("/sessions/{session_id}/progress")
    async def voting_progress(
        session_id: UUID, request: Request
    ) -> VotingProgressResponse:
        """Return participation in the current round."""
        state_container: AppContainer = request.app.state.container
        progress = state_container.stats_service.voting_progress(session_id)
        return VotingProgressResponse.from_progress(progress)

    return app


def _status_for(exc: SwipeMatchError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
