"""Domain models for voting progress and session statistics."""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass
class ItemTally:
    likes: int = 0
    dislikes: int = 0
    skips: int = 0


@dataclass(frozen=True)
class VotingProgress:
    """Participation in the session's current round."""

    session_id: UUID
    round_number: int
    active_member_count: int
    voter_count: int
    quorum: int
    items: dict[str, ItemTally] = field(default_factory=dict)

    @property
    def quorum_reached(self) -> bool:
        return self.voter_count >= self.quorum


@dataclass(frozen=True)
class SessionStatistics:
    """Vote totals across every round of a session."""

    session_id: UUID
    total_votes: int
    votes_by_round: dict[int, int]
    votes_by_decision: dict[str, int]
    votes_by_voter: dict[UUID, int]
