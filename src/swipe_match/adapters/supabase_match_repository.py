"""Supabase repository for round matches."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from supabase import Client

from swipe_match.adapters.supabase_errors import parse_timestamp, store_errors
from swipe_match.domain.matches import MatchCandidate, MatchRecord
from swipe_match.domain.votes import ItemSnapshot, ItemType
from swipe_match.errors import CorruptRecordError
from swipe_match.services.matches import MatchRepository


@dataclass
class SupabaseMatchRepository(MatchRepository):
    """Supabase implementation for matches."""

    client: Client

    def insert_matches(
        self, candidates: list[MatchCandidate], matched_at: datetime
    ) -> None:
        """Insert match rows, ignoring ones that already exist."""
        payload = [
            {
                "session_id": str(candidate.session_id),
                "item_id": candidate.item_id,
                "item_type": str(candidate.item_type),
                "item_data": candidate.item_snapshot.to_payload(),
                "vote_count": candidate.vote_count,
                "match_score": str(candidate.match_score),
                "round_number": candidate.round_number,
                "matched_at": matched_at.isoformat(),
            }
            for candidate in candidates
        ]
        if not payload:
            return
        with store_errors("insert_matches"):
            self.client.table("matches").upsert(
                payload,
                on_conflict="session_id,item_id,round_number",
                ignore_duplicates=True,
            ).execute()

    def list_matches(self, session_id: UUID, round_number: int) -> list[MatchRecord]:
        """Return match rows for a round."""
        with store_errors("list_matches"):
            response = (
                self.client.table("matches")
                .select(
                    "id, session_id, item_id, item_type, item_data, vote_count, "
                    "match_score, round_number, matched_at"
                )
                .eq("session_id", str(session_id))
                .eq("round_number", round_number)
                .execute()
            )
        return [_parse_match(row) for row in response.data or []]


def _parse_match(row: dict[str, object]) -> MatchRecord:
    try:
        return MatchRecord(
            id=UUID(str(row["id"])),
            session_id=UUID(str(row["session_id"])),
            item_id=str(row["item_id"]),
            item_type=ItemType(row.get("item_type") or "restaurant"),
            item_snapshot=ItemSnapshot.from_payload(row.get("item_data")),
            vote_count=int(row.get("vote_count") or 0),
            match_score=Decimal(str(row["match_score"])),
            round_number=int(row["round_number"]),
            matched_at=parse_timestamp(row.get("matched_at")),
        )
    except (InvalidOperation, KeyError, TypeError, ValueError) as exc:
        raise CorruptRecordError(
            f"Unreadable match row: {exc}", details={"id": row.get("id")}
        ) from exc
