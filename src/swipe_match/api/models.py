"""Pydantic request and response models for the HTTP API."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from swipe_match.domain.matches import MatchRecord
from swipe_match.domain.sessions import EnergyLevel, SessionRecord, SessionStatus
from swipe_match.domain.stats import SessionStatistics, VotingProgress
from swipe_match.domain.votes import ItemType, VoteDecision, VoteRecord
from swipe_match.services.rounds import OutcomeKind, RoundOutcome


class CreateSessionRequest(BaseModel):
    group_id: UUID
    energy_level: EnergyLevel = EnergyLevel.MEDIUM
    config: dict[str, Any] | None = None


class VoteRequest(BaseModel):
    voter_id: UUID
    item_id: str = Field(min_length=1)
    item_type: ItemType = ItemType.RESTAURANT
    decision: VoteDecision
    item_snapshot: dict[str, Any] | None = None


class CancelRequest(BaseModel):
    reason: str = Field(default="cancelled", min_length=1)


class MatchResponse(BaseModel):
    id: UUID
    item_id: str
    item_type: ItemType
    item_snapshot: dict[str, Any]
    vote_count: int
    match_score: Decimal
    round_number: int
    matched_at: datetime | None

    @classmethod
    def from_record(cls, match: MatchRecord) -> "MatchResponse":
        return cls(
            id=match.id,
            item_id=match.item_id,
            item_type=match.item_type,
            item_snapshot=match.item_snapshot.to_payload(),
            vote_count=match.vote_count,
            match_score=match.match_score,
            round_number=match.round_number,
            matched_at=match.matched_at,
        )


class SessionResponse(BaseModel):
    id: UUID
    group_id: UUID
    status: SessionStatus
    energy_level: EnergyLevel
    round_number: int
    config: dict[str, Any]
    started_at: datetime | None
    ended_at: datetime | None
    end_reason: str | None
    winning_match: MatchResponse | None = None

    @classmethod
    def from_record(
        cls, session: SessionRecord, winner: MatchRecord | None = None
    ) -> "SessionResponse":
        return cls(
            id=session.id,
            group_id=session.group_id,
            status=session.status,
            energy_level=session.energy_level,
            round_number=session.round_number,
            config=session.config.to_payload(),
            started_at=session.started_at,
            ended_at=session.ended_at,
            end_reason=session.end_reason,
            winning_match=MatchResponse.from_record(winner) if winner else None,
        )


class VoteResponse(BaseModel):
    id: UUID
    session_id: UUID
    voter_id: UUID
    item_id: str
    item_type: ItemType
    decision: VoteDecision
    item_snapshot: dict[str, Any]
    round_number: int
    voted_at: datetime | None

    @classmethod
    def from_record(cls, vote: VoteRecord) -> "VoteResponse":
        return cls(
            id=vote.id,
            session_id=vote.session_id,
            voter_id=vote.voter_id,
            item_id=vote.item_id,
            item_type=vote.item_type,
            decision=vote.decision,
            item_snapshot=vote.item_snapshot.to_payload(),
            round_number=vote.round_number,
            voted_at=vote.voted_at,
        )


class RoundOutcomeResponse(BaseModel):
    outcome: OutcomeKind
    session_id: UUID
    round_number: int
    new_round: int | None
    winning_match: MatchResponse | None
    matches: list[MatchResponse]

    @classmethod
    def from_outcome(cls, outcome: RoundOutcome) -> "RoundOutcomeResponse":
        winner = outcome.winner
        return cls(
            outcome=outcome.kind,
            session_id=outcome.session_id,
            round_number=outcome.round_number,
            new_round=outcome.new_round,
            winning_match=MatchResponse.from_record(winner) if winner else None,
            matches=[MatchResponse.from_record(match) for match in outcome.matches],
        )


class ItemTallyResponse(BaseModel):
    likes: int
    dislikes: int
    skips: int


class VotingProgressResponse(BaseModel):
    session_id: UUID
    round_number: int
    active_member_count: int
    voter_count: int
    quorum: int
    quorum_reached: bool
    items: dict[str, ItemTallyResponse]

    @classmethod
    def from_progress(cls, progress: VotingProgress) -> "VotingProgressResponse":
        return cls(
            session_id=progress.session_id,
            round_number=progress.round_number,
            active_member_count=progress.active_member_count,
            voter_count=progress.voter_count,
            quorum=progress.quorum,
            quorum_reached=progress.quorum_reached,
            items={
                item_id: ItemTallyResponse(
                    likes=tally.likes, dislikes=tally.dislikes, skips=tally.skips
                )
                for item_id, tally in progress.items.items()
            },
        )


def serialize_statistics(stats: SessionStatistics) -> dict[str, object]:
    return {
        "session_id": str(stats.session_id),
        "total_votes": stats.total_votes,
        "votes_by_round": {
            str(round_number): count
            for round_number, count in sorted(stats.votes_by_round.items())
        },
        "votes_by_decision": stats.votes_by_decision,
        "votes_by_voter": {
            str(voter_id): count for voter_id, count in stats.votes_by_voter.items()
        },
    }
