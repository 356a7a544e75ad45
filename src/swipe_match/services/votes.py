"""Round-scoped, append-only vote ledger."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from swipe_match.domain.sessions import SessionStatus
from swipe_match.domain.votes import (
    ItemSnapshot,
    ItemType,
    LikedItem,
    NewVote,
    VoteDecision,
    VoteRecord,
)
from swipe_match.errors import SessionNotFoundError, SessionNotVotableError
from swipe_match.services.retry import RetryPolicy
from swipe_match.services.sessions import SessionRepository

logger = logging.getLogger(__name__)


class VoteRepository(Protocol):
    """Persistence interface for votes."""

    def insert_vote(self, vote: NewVote) -> VoteRecord | None:
        """Insert a vote if the session is still active on the vote's round.

        The status check and the insert happen atomically. Returns None when
        the session is no longer active on that round, and raises
        DuplicateVoteError when (session, voter, item, round) already exists.
        """

    def count_distinct_voters(self, session_id: UUID, round_number: int) -> int:
        """Return how many voters cast at least one vote in the round."""

    def count_likes(self, session_id: UUID, round_number: int, item_id: str) -> int:
        """Return the number of like votes for an item in the round."""

    def list_items_with_any_like(
        self, session_id: UUID, round_number: int
    ) -> list[LikedItem]:
        """Return each item liked at least once in the round."""

    def list_votes(
        self, session_id: UUID, round_number: int | None = None
    ) -> list[VoteRecord]:
        """Return votes for a session, optionally for a single round."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class VoteLedger:
    """Accepts votes for the open round of an active session."""

    session_repository: SessionRepository
    repository: VoteRepository
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    clock: Callable[[], datetime] = _utcnow

    def cast_vote(  # noqa: PLR0913
        self,
        session_id: UUID,
        voter_id: UUID,
        item_id: str,
        item_type: ItemType,
        decision: VoteDecision,
        item_snapshot: ItemSnapshot | None = None,
    ) -> VoteRecord:
        """Record a write-once vote tagged with the session's current round."""
        session = self.retry.read(
            lambda: self.session_repository.get_session(session_id), "get_session"
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise _not_votable(session_id, session.status)
        vote = self.repository.insert_vote(
            NewVote(
                session_id=session_id,
                voter_id=voter_id,
                item_id=item_id,
                item_type=item_type,
                decision=decision,
                item_snapshot=item_snapshot or ItemSnapshot(),
                round_number=session.round_number,
                voted_at=self.clock(),
            )
        )
        if vote is None:
            # Round closed or session cancelled between the read and the insert.
            refreshed = self.session_repository.get_session(session_id)
            raise _not_votable(
                session_id, refreshed.status if refreshed else session.status
            )
        logger.info(
            "Vote recorded",
            extra={
                "session_id": str(session_id),
                "round_number": vote.round_number,
                "decision": str(decision),
            },
        )
        return vote

    def count_distinct_voters(self, session_id: UUID, round_number: int) -> int:
        return self.retry.read(
            lambda: self.repository.count_distinct_voters(session_id, round_number),
            "count_distinct_voters",
        )

    def count_likes(self, session_id: UUID, round_number: int, item_id: str) -> int:
        return self.retry.read(
            lambda: self.repository.count_likes(session_id, round_number, item_id),
            "count_likes",
        )

    def list_items_with_any_like(
        self, session_id: UUID, round_number: int
    ) -> list[LikedItem]:
        return self.retry.read(
            lambda: self.repository.list_items_with_any_like(session_id, round_number),
            "list_items_with_any_like",
        )

    def list_votes(
        self, session_id: UUID, round_number: int | None = None
    ) -> list[VoteRecord]:
        return self.retry.read(
            lambda: self.repository.list_votes(session_id, round_number),
            "list_votes",
        )


def _not_votable(session_id: UUID, status: SessionStatus) -> SessionNotVotableError:
    return SessionNotVotableError(
        f"Session is {status} and not accepting votes",
        details={"session_id": str(session_id), "status": str(status)},
    )
