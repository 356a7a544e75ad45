"""Round closure policy.

Triggers (a round timer tick, a "last voter" notification, or both) call
``evaluate``. Triggers may fire concurrently; only the caller whose
``begin_round_closure`` wins goes on to compute matches and move the session
forward, every other caller sees ``StaleRoundError`` and does nothing.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Protocol
from uuid import UUID

from swipe_match.domain.matches import MatchRecord
from swipe_match.domain.sessions import SessionRecord, SessionStatus
from swipe_match.errors import (
    InvalidTransitionError,
    RoundLimitExceededError,
    StaleRoundError,
)
from swipe_match.services.matches import MatchEngine
from swipe_match.services.retry import RetryPolicy
from swipe_match.services.sessions import NO_CONSENSUS_REASON, SessionManager
from swipe_match.services.votes import VoteLedger

logger = logging.getLogger(__name__)


class MemberDirectory(Protocol):
    """Source of the group roster size used for quorum and scoring."""

    def count_active_members(self, group_id: UUID) -> int:
        """Return the number of active members in a group."""


class OutcomeKind(StrEnum):
    NOT_READY = "not_ready"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    ADVANCED = "advanced"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class RoundOutcome:
    """What a closure trigger did to the session."""

    kind: OutcomeKind
    session_id: UUID
    round_number: int
    matches: list[MatchRecord] = field(default_factory=list)
    new_round: int | None = None

    @property
    def winner(self) -> MatchRecord | None:
        if self.kind != OutcomeKind.COMPLETED or not self.matches:
            return None
        return self.matches[0]


def quorum_size(active_member_count: int, quorum_fraction: float) -> int:
    """Distinct voters needed before a round may close early."""
    return math.ceil(Decimal(active_member_count) * Decimal(str(quorum_fraction)))


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class RoundController:
    """Decides when a round closes and what happens to the session after."""

    session_manager: SessionManager
    ledger: VoteLedger
    match_engine: MatchEngine
    member_directory: MemberDirectory
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    clock: Callable[[], datetime] = _utcnow

    def evaluate(
        self,
        session_id: UUID,
        round_number: int | None = None,
        now: datetime | None = None,
    ) -> RoundOutcome:
        """Close the round if quorum or timeout is reached, then settle it."""
        session = self.session_manager.get(session_id)
        target_round = (
            session.round_number if round_number is None else round_number
        )
        if (
            session.status != SessionStatus.ACTIVE
            or session.round_number != target_round
        ):
            return RoundOutcome(OutcomeKind.SKIPPED, session_id, target_round)

        member_count = self._count_members(session)
        if member_count < 1:
            logger.warning(
                "Group has no active members, round stays open",
                extra={"session_id": str(session_id)},
            )
            return RoundOutcome(OutcomeKind.NOT_READY, session_id, target_round)
        if not self.is_ready(session, member_count, now or self.clock()):
            return RoundOutcome(OutcomeKind.NOT_READY, session_id, target_round)

        try:
            self.session_manager.begin_round_closure(session_id, target_round)
        except (StaleRoundError, InvalidTransitionError):
            logger.info(
                "Round already closed by another trigger",
                extra={"session_id": str(session_id), "round_number": target_round},
            )
            return RoundOutcome(OutcomeKind.SKIPPED, session_id, target_round)
        return self._settle(session_id, target_round, member_count)

    def resume(self, session_id: UUID) -> RoundOutcome:
        """Settle a round left in voting by a closer that never finished."""
        session = self.session_manager.get(session_id)
        if session.status != SessionStatus.VOTING:
            return RoundOutcome(OutcomeKind.SKIPPED, session_id, session.round_number)
        member_count = self._count_members(session)
        if member_count < 1:
            return RoundOutcome(
                OutcomeKind.NOT_READY, session_id, session.round_number
            )
        return self._settle(session_id, session.round_number, member_count)

    def is_ready(
        self, session: SessionRecord, member_count: int, now: datetime
    ) -> bool:
        """Quorum of distinct voters reached, or the round timed out."""
        voters = self.ledger.count_distinct_voters(session.id, session.round_number)
        if voters >= quorum_size(member_count, session.config.quorum_fraction):
            return True
        started = session.round_started_at or session.started_at
        if started is None:
            return False
        elapsed = (now - started).total_seconds()
        return elapsed >= session.config.round_timeout_seconds

    def _settle(
        self, session_id: UUID, round_number: int, member_count: int
    ) -> RoundOutcome:
        matches = self.match_engine.compute_matches(
            session_id, round_number, member_count
        )
        try:
            if matches:
                self.session_manager.complete(
                    session_id, matches[0], expected_round=round_number
                )
                return RoundOutcome(
                    OutcomeKind.COMPLETED, session_id, round_number, matches
                )
            try:
                advanced = self.session_manager.advance_round(
                    session_id, expected_round=round_number
                )
            except RoundLimitExceededError:
                self.session_manager.cancel(session_id, NO_CONSENSUS_REASON)
                return RoundOutcome(OutcomeKind.CANCELLED, session_id, round_number)
            return RoundOutcome(
                OutcomeKind.ADVANCED,
                session_id,
                round_number,
                new_round=advanced.round_number,
            )
        except (InvalidTransitionError, StaleRoundError):
            # Cancelled or settled elsewhere while matches were being computed.
            logger.info(
                "Round outcome superseded",
                extra={"session_id": str(session_id), "round_number": round_number},
            )
            return RoundOutcome(
                OutcomeKind.SUPERSEDED, session_id, round_number, matches
            )

    def _count_members(self, session: SessionRecord) -> int:
        return self.retry.read(
            lambda: self.member_directory.count_active_members(session.group_id),
            "count_active_members",
        )
