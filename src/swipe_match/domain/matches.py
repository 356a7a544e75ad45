"""Domain models for round matches."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from swipe_match.domain.votes import ItemSnapshot, ItemType


@dataclass(frozen=True)
class MatchCandidate:
    """An item whose like share reached the threshold in a closed round."""

    session_id: UUID
    item_id: str
    item_type: ItemType
    item_snapshot: ItemSnapshot
    vote_count: int
    match_score: Decimal
    round_number: int


@dataclass(frozen=True)
class MatchRecord:
    """Represents a persisted, immutable match."""

    id: UUID
    session_id: UUID
    item_id: str
    item_type: ItemType
    item_snapshot: ItemSnapshot
    vote_count: int
    match_score: Decimal
    round_number: int
    matched_at: datetime


def ranking_key(match: MatchCandidate | MatchRecord) -> tuple[Decimal, int, str]:
    """Sort key: score desc, like count desc, item id asc."""
    return (-match.match_score, -match.vote_count, match.item_id)
