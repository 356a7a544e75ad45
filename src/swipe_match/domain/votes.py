"""Domain models for votes cast during a session."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

SNAPSHOT_VERSION = 1


class ItemType(StrEnum):
    RESTAURANT = "restaurant"
    DISH = "dish"
    CUISINE = "cuisine"


class VoteDecision(StrEnum):
    LIKE = "like"
    DISLIKE = "dislike"
    SKIP = "skip"


@dataclass(frozen=True)
class ItemSnapshot:
    """Catalog payload captured at vote time; kept for audit, never re-fetched."""

    name: str | None = None
    data: dict[str, object] = field(default_factory=dict)
    version: int = SNAPSHOT_VERSION

    def to_payload(self) -> dict[str, object]:
        payload = dict(self.data)
        payload.setdefault("version", self.version)
        if self.name is not None:
            payload["name"] = self.name
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, object] | None) -> "ItemSnapshot":
        """Split out a string ``name`` and integer ``version``.

        Values of any other shape stay in ``data`` untouched, so the payload
        written back is the one the catalog sent.
        """
        raw = dict(payload or {})
        name = raw.get("name")
        if isinstance(name, str):
            del raw["name"]
        else:
            name = None
        version = raw.get("version")
        if isinstance(version, int) and not isinstance(version, bool):
            del raw["version"]
        else:
            version = SNAPSHOT_VERSION
        return cls(name=name, data=raw, version=version)


@dataclass(frozen=True)
class NewVote:
    """A vote about to be persisted for the session's open round."""

    session_id: UUID
    voter_id: UUID
    item_id: str
    item_type: ItemType
    decision: VoteDecision
    item_snapshot: ItemSnapshot
    round_number: int
    voted_at: datetime


@dataclass(frozen=True)
class VoteRecord:
    """Represents a persisted, immutable vote."""

    id: UUID
    session_id: UUID
    voter_id: UUID
    item_id: str
    item_type: ItemType
    decision: VoteDecision
    item_snapshot: ItemSnapshot
    round_number: int
    voted_at: datetime


@dataclass(frozen=True)
class LikedItem:
    """An item that received at least one like in a round."""

    item_id: str
    item_type: ItemType
    item_snapshot: ItemSnapshot
