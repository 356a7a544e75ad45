"""Supabase repository for session votes."""

from dataclasses import dataclass
from uuid import UUID

from postgrest.exceptions import APIError
from postgrest.types import CountMethod
from supabase import Client

from swipe_match.adapters.supabase_errors import (
    UNIQUE_VIOLATION,
    parse_timestamp,
    store_errors,
)
from swipe_match.adapters.supabase_paging import fetch_all_rows
from swipe_match.domain.votes import (
    ItemSnapshot,
    ItemType,
    LikedItem,
    NewVote,
    VoteDecision,
    VoteRecord,
)
from swipe_match.errors import CorruptRecordError, DuplicateVoteError
from swipe_match.services.votes import VoteRepository

_COLUMNS = (
    "id, session_id, user_id, item_id, item_type, vote, item_data, "
    "round_number, voted_at"
)


@dataclass
class SupabaseVoteRepository(VoteRepository):
    """Supabase implementation for the vote ledger.

    Inserts go through the ``cast_session_vote`` SQL function so the session
    status check and the insert run in one statement.
    """

    client: Client

    def insert_vote(self, vote: NewVote) -> VoteRecord | None:
        """Insert a vote while the session is active on the vote's round."""
        try:
            with store_errors("insert_vote"):
                response = self.client.rpc(
                    "cast_session_vote",
                    {
                        "p_session_id": str(vote.session_id),
                        "p_user_id": str(vote.voter_id),
                        "p_item_id": vote.item_id,
                        "p_item_type": str(vote.item_type),
                        "p_vote": str(vote.decision),
                        "p_item_data": vote.item_snapshot.to_payload(),
                        "p_round_number": vote.round_number,
                        "p_voted_at": vote.voted_at.isoformat(),
                    },
                ).execute()
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise DuplicateVoteError(
                    "Already voted for this item in the current round",
                    details={
                        "session_id": str(vote.session_id),
                        "item_id": vote.item_id,
                        "round_number": vote.round_number,
                    },
                ) from exc
            raise
        rows = response.data
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return None
        return _parse_vote(rows[0])

    def count_distinct_voters(self, session_id: UUID, round_number: int) -> int:
        """Return the number of distinct voters in a round.

        Counted in the database by ``session_round_voter_count`` so the result
        is not bounded by the response row limit.
        """
        with store_errors("count_distinct_voters"):
            response = self.client.rpc(
                "session_round_voter_count",
                {"p_session_id": str(session_id), "p_round_number": round_number},
            ).execute()
        count = response.data
        if isinstance(count, list):
            count = count[0] if count else 0
        return int(count or 0)

    def count_likes(self, session_id: UUID, round_number: int, item_id: str) -> int:
        """Return the like count for an item in a round."""
        with store_errors("count_likes"):
            response = (
                self.client.table("session_votes")
                .select("id", count=CountMethod.exact)
                .eq("session_id", str(session_id))
                .eq("round_number", round_number)
                .eq("item_id", item_id)
                .eq("vote", str(VoteDecision.LIKE))
                .execute()
            )
        if response.count is not None:
            return response.count
        return len(response.data or [])

    def list_items_with_any_like(
        self, session_id: UUID, round_number: int
    ) -> list[LikedItem]:
        """Return liked items, with the snapshot from their earliest like."""
        rows = fetch_all_rows(
            lambda: self.client.table("session_votes")
            .select("id, item_id, item_type, item_data, voted_at")
            .eq("session_id", str(session_id))
            .eq("round_number", round_number)
            .eq("vote", str(VoteDecision.LIKE))
            .order("voted_at", desc=False)
            .order("id", desc=False),
            "list_items_with_any_like",
        )
        items: dict[str, LikedItem] = {}
        for row in rows:
            item_id = str(row["item_id"])
            if item_id in items:
                continue
            items[item_id] = LikedItem(
                item_id=item_id,
                item_type=ItemType(row.get("item_type") or "restaurant"),
                item_snapshot=ItemSnapshot.from_payload(row.get("item_data")),
            )
        return list(items.values())

    def list_votes(
        self, session_id: UUID, round_number: int | None = None
    ) -> list[VoteRecord]:
        """Return votes for a session, optionally restricted to one round."""

        def build_query():  # noqa: ANN202
            query = (
                self.client.table("session_votes")
                .select(_COLUMNS)
                .eq("session_id", str(session_id))
            )
            if round_number is not None:
                query = query.eq("round_number", round_number)
            return query.order("voted_at", desc=False).order("id", desc=False)

        return [_parse_vote(row) for row in fetch_all_rows(build_query, "list_votes")]


def _parse_vote(row: dict[str, object]) -> VoteRecord:
    try:
        return VoteRecord(
            id=UUID(str(row["id"])),
            session_id=UUID(str(row["session_id"])),
            voter_id=UUID(str(row["user_id"])),
            item_id=str(row["item_id"]),
            item_type=ItemType(row.get("item_type") or "restaurant"),
            decision=VoteDecision(row["vote"]),
            item_snapshot=ItemSnapshot.from_payload(row.get("item_data")),
            round_number=int(row["round_number"]),
            voted_at=parse_timestamp(row.get("voted_at")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptRecordError(
            f"Unreadable vote row: {exc}", details={"id": row.get("id")}
        ) from exc
