"""Session lifecycle state machine.

Every transition is a conditional update keyed on the status (and, where it
matters, the round) the caller observed. The store applies the update only if
the row still matches, so concurrent callers cannot both win a transition and
a transition from an unexpected state is rejected rather than ignored.
"""

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from swipe_match.domain.events import RoundAdvanced, SessionCancelled, SessionCompleted
from swipe_match.domain.matches import MatchRecord
from swipe_match.domain.sessions import (
    DEFAULT_CONFIG,
    OPEN_STATUSES,
    EnergyLevel,
    SessionChanges,
    SessionConfig,
    SessionRecord,
    SessionStatus,
)
from swipe_match.errors import (
    InvalidTransitionError,
    RoundLimitExceededError,
    SessionNotFoundError,
    StaleRoundError,
)
from swipe_match.services.events import EventPublisher
from swipe_match.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

NO_CONSENSUS_REASON = "no consensus reached"


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(
        self,
        group_id: UUID,
        energy_level: EnergyLevel,
        config: SessionConfig,
        created_at: datetime,
    ) -> SessionRecord:
        """Create a pending session on round 1 and return it."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def list_recent_sessions(self, limit: int) -> list[SessionRecord]:
        """Return the most recently created sessions."""

    def compare_and_set(
        self,
        session_id: UUID,
        expected_statuses: Collection[SessionStatus],
        expected_round: int | None,
        changes: SessionChanges,
    ) -> SessionRecord | None:
        """Apply changes only if status (and round, when given) still match.

        Returns the updated session, or None when the row no longer matches.
        """


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionManager:
    """Owns session status and round number; the only writer of either."""

    repository: SessionRepository
    publisher: EventPublisher
    default_config: SessionConfig = DEFAULT_CONFIG
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    clock: Callable[[], datetime] = _utcnow

    def create(
        self,
        group_id: UUID,
        config: SessionConfig | dict[str, object] | None = None,
        energy_level: EnergyLevel = EnergyLevel.MEDIUM,
    ) -> SessionRecord:
        """Create a pending session on round 1."""
        if isinstance(config, SessionConfig):
            resolved = config.validate()
        else:
            resolved = SessionConfig.from_payload(config, self.default_config)
        session = self.repository.create_session(
            group_id=group_id,
            energy_level=energy_level,
            config=resolved,
            created_at=self.clock(),
        )
        logger.info(
            "Session created",
            extra={"session_id": str(session.id), "group_id": str(group_id)},
        )
        return session

    def get(self, session_id: UUID) -> SessionRecord:
        """Return the session or raise SessionNotFoundError."""
        session = self.retry.read(
            lambda: self.repository.get_session(session_id), "get_session"
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_recent(self, limit: int = 20) -> list[SessionRecord]:
        return self.retry.read(
            lambda: self.repository.list_recent_sessions(limit), "list_sessions"
        )

    def start(self, session_id: UUID) -> SessionRecord:
        """Move a pending session to active and open round 1."""
        session = self.get(session_id)
        if session.status != SessionStatus.PENDING:
            raise _invalid_transition(session, "start")
        now = self.clock()
        updated = self.repository.compare_and_set(
            session_id,
            {SessionStatus.PENDING},
            None,
            SessionChanges(
                status=SessionStatus.ACTIVE, started_at=now, round_started_at=now
            ),
        )
        if updated is None:
            raise _invalid_transition(self.get(session_id), "start")
        logger.info("Session started", extra={"session_id": str(session_id)})
        return updated

    def begin_round_closure(self, session_id: UUID, round_number: int) -> SessionRecord:
        """Close the open round for voting; exactly one concurrent caller wins."""
        session = self.get(session_id)
        if session.round_number != round_number or (
            session.status == SessionStatus.VOTING
        ):
            raise _stale_round(session, round_number)
        if session.status != SessionStatus.ACTIVE:
            raise _invalid_transition(session, "begin_round_closure")
        updated = self.repository.compare_and_set(
            session_id,
            {SessionStatus.ACTIVE},
            round_number,
            SessionChanges(status=SessionStatus.VOTING, last_closed_round=round_number),
        )
        if updated is None:
            raise _stale_round(session, round_number)
        logger.info(
            "Round closed",
            extra={"session_id": str(session_id), "round_number": round_number},
        )
        return updated

    def advance_round(
        self, session_id: UUID, expected_round: int | None = None
    ) -> SessionRecord:
        """Reopen voting on the next round.

        With ``expected_round`` the call only applies while the session is
        still on that round.
        """
        session = self.get(session_id)
        if expected_round is not None and session.round_number != expected_round:
            raise _stale_round(session, expected_round)
        if session.status != SessionStatus.VOTING:
            raise _invalid_transition(session, "advance_round")
        new_round = session.round_number + 1
        if new_round > session.config.max_rounds:
            raise RoundLimitExceededError(
                f"Round {new_round} exceeds maxRounds={session.config.max_rounds}",
                details={
                    "session_id": str(session_id),
                    "max_rounds": session.config.max_rounds,
                },
            )
        updated = self.repository.compare_and_set(
            session_id,
            {SessionStatus.VOTING},
            session.round_number,
            SessionChanges(
                status=SessionStatus.ACTIVE,
                round_number=new_round,
                round_started_at=self.clock(),
            ),
        )
        if updated is None:
            raise _stale_round(session, session.round_number)
        logger.info(
            "Round advanced",
            extra={"session_id": str(session_id), "round_number": new_round},
        )
        self.publisher.publish(RoundAdvanced(session_id=session_id, new_round=new_round))
        return updated

    def complete(
        self,
        session_id: UUID,
        winner: MatchRecord | None = None,
        expected_round: int | None = None,
    ) -> SessionRecord:
        """Finish the session, optionally naming the winning match."""
        session = self.get(session_id)
        if expected_round is not None and session.round_number != expected_round:
            raise _stale_round(session, expected_round)
        allowed = {SessionStatus.ACTIVE, SessionStatus.VOTING}
        if session.status not in allowed:
            raise _invalid_transition(session, "complete")
        updated = self.repository.compare_and_set(
            session_id,
            allowed,
            session.round_number,
            SessionChanges(
                status=SessionStatus.COMPLETED,
                ended_at=self.clock(),
                end_reason="match found" if winner else "completed",
            ),
        )
        if updated is None:
            raise _invalid_transition(self.get(session_id), "complete")
        logger.info(
            "Session completed",
            extra={
                "session_id": str(session_id),
                "item_id": winner.item_id if winner else None,
            },
        )
        self.publisher.publish(
            SessionCompleted(
                session_id=session_id,
                winning_item_id=winner.item_id if winner else None,
                match_score=winner.match_score if winner else None,
            )
        )
        return updated

    def cancel(self, session_id: UUID, reason: str = "cancelled") -> SessionRecord:
        """Cancel a session from any non-terminal state."""
        session = self.get(session_id)
        if session.status.is_terminal:
            raise _invalid_transition(session, "cancel")
        updated = self.repository.compare_and_set(
            session_id,
            OPEN_STATUSES,
            None,
            SessionChanges(
                status=SessionStatus.CANCELLED,
                ended_at=self.clock(),
                end_reason=reason,
            ),
        )
        if updated is None:
            raise _invalid_transition(self.get(session_id), "cancel")
        logger.info(
            "Session cancelled",
            extra={"session_id": str(session_id), "reason": reason},
        )
        self.publisher.publish(SessionCancelled(session_id=session_id, reason=reason))
        return updated


def _invalid_transition(
    session: SessionRecord, transition: str
) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Cannot {transition} a session that is {session.status}",
        details={"session_id": str(session.id), "status": str(session.status)},
    )


def _stale_round(session: SessionRecord, round_number: int) -> StaleRoundError:
    return StaleRoundError(
        f"Round {round_number} is no longer open",
        details={
            "session_id": str(session.id),
            "requested_round": round_number,
            "current_round": session.round_number,
        },
    )
