"""Aggregation of a closed round's votes into ranked matches."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from swipe_match.domain.matches import MatchCandidate, MatchRecord, ranking_key
from swipe_match.domain.sessions import SessionRecord, SessionStatus
from swipe_match.errors import RoundNotClosedError, SessionNotFoundError
from swipe_match.services.retry import RetryPolicy
from swipe_match.services.sessions import SessionRepository
from swipe_match.services.votes import VoteLedger

logger = logging.getLogger(__name__)

SCORE_PRECISION = Decimal("0.01")


class MatchRepository(Protocol):
    """Persistence interface for matches."""

    def insert_matches(
        self, candidates: list[MatchCandidate], matched_at: datetime
    ) -> None:
        """Insert matches, leaving any existing (session, item, round) row as is."""

    def list_matches(self, session_id: UUID, round_number: int) -> list[MatchRecord]:
        """Return stored matches for a round in any order."""


def match_score(vote_count: int, active_member_count: int) -> Decimal:
    """Share of the whole group that liked an item, to two decimals.

    Members who disliked, skipped or did not vote stay in the denominator.
    """
    share = Decimal(vote_count) / Decimal(active_member_count)
    return share.quantize(SCORE_PRECISION, rounding=ROUND_HALF_UP)


def rank(matches: list[MatchRecord]) -> list[MatchRecord]:
    return sorted(matches, key=ranking_key)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MatchEngine:
    """Scores liked items of a closed round and persists qualifying matches."""

    session_repository: SessionRepository
    ledger: VoteLedger
    repository: MatchRepository
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    clock: Callable[[], datetime] = _utcnow

    def compute_matches(
        self, session_id: UUID, round_number: int, active_member_count: int
    ) -> list[MatchRecord]:
        """Return ranked matches for a closed round, persisting any new ones.

        Safe to call repeatedly: existing match rows are never re-inserted and
        the same votes always produce the same ranked list.
        """
        if active_member_count < 1:
            raise ValueError("active_member_count must be at least 1")
        session = self._get_session(session_id)
        if not session.is_round_closed(round_number):
            raise RoundNotClosedError(
                f"Round {round_number} has not been closed",
                details={
                    "session_id": str(session_id),
                    "round_number": round_number,
                    "last_closed_round": session.last_closed_round,
                },
            )
        threshold = Decimal(str(session.config.match_threshold_fraction))

        candidates: list[MatchCandidate] = []
        for item in self.ledger.list_items_with_any_like(session_id, round_number):
            vote_count = self.ledger.count_likes(session_id, round_number, item.item_id)
            score = match_score(vote_count, active_member_count)
            if score < threshold:
                continue
            candidates.append(
                MatchCandidate(
                    session_id=session_id,
                    item_id=item.item_id,
                    item_type=item.item_type,
                    item_snapshot=item.item_snapshot,
                    vote_count=vote_count,
                    match_score=score,
                    round_number=round_number,
                )
            )
        if not candidates:
            logger.info(
                "No item reached the match threshold",
                extra={"session_id": str(session_id), "round_number": round_number},
            )
            return []

        self.repository.insert_matches(candidates, self.clock())
        qualifying = {candidate.item_id for candidate in candidates}
        stored = [
            match
            for match in self.list_matches(session_id, round_number)
            if match.item_id in qualifying
        ]
        logger.info(
            "Matches computed",
            extra={
                "session_id": str(session_id),
                "round_number": round_number,
                "match_count": len(stored),
            },
        )
        return stored

    def list_matches(self, session_id: UUID, round_number: int) -> list[MatchRecord]:
        """Return the stored matches of a round, best first."""
        return rank(
            self.retry.read(
                lambda: self.repository.list_matches(session_id, round_number),
                "list_matches",
            )
        )

    def winning_match(self, session: SessionRecord) -> MatchRecord | None:
        """Return the top match of a completed session's final round."""
        if session.status != SessionStatus.COMPLETED:
            return None
        ranked = self.list_matches(session.id, session.round_number)
        return ranked[0] if ranked else None

    def _get_session(self, session_id: UUID) -> SessionRecord:
        session = self.retry.read(
            lambda: self.session_repository.get_session(session_id), "get_session"
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        return session
