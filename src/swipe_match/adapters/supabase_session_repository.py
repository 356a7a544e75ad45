"""Supabase-backed session repository."""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from swipe_match.adapters.supabase_errors import parse_timestamp, store_errors
from swipe_match.domain.sessions import (
    DEFAULT_CONFIG,
    EnergyLevel,
    SessionChanges,
    SessionConfig,
    SessionRecord,
    SessionStatus,
)
from swipe_match.errors import CorruptRecordError, InvalidConfigError
from swipe_match.services.sessions import SessionRepository

_COLUMNS = (
    "id, group_id, status, energy_level, round_number, session_config, "
    "started_at, ended_at, round_started_at, last_closed_round, end_reason, "
    "created_at"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for group sessions."""

    client: Client

    def create_session(
        self,
        group_id: UUID,
        energy_level: EnergyLevel,
        config: SessionConfig,
        created_at: datetime,
    ) -> SessionRecord:
        """Create a pending session row and return it."""
        with store_errors("create_session"):
            response = (
                self.client.table("sessions")
                .insert(
                    {
                        "group_id": str(group_id),
                        "status": str(SessionStatus.PENDING),
                        "energy_level": str(energy_level),
                        "round_number": 1,
                        "last_closed_round": 0,
                        "session_config": config.to_payload(),
                        "created_at": created_at.isoformat(),
                    }
                )
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _parse_session(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        with store_errors("get_session"):
            response = (
                self.client.table("sessions")
                .select(_COLUMNS)
                .eq("id", str(session_id))
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def list_recent_sessions(self, limit: int) -> list[SessionRecord]:
        """Return the most recently created sessions."""
        with store_errors("list_recent_sessions"):
            response = (
                self.client.table("sessions")
                .select(_COLUMNS)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        return [_parse_session(row) for row in response.data or []]

    def compare_and_set(
        self,
        session_id: UUID,
        expected_statuses: Collection[SessionStatus],
        expected_round: int | None,
        changes: SessionChanges,
    ) -> SessionRecord | None:
        """Update the row only while it still has an expected status and round."""
        query = (
            self.client.table("sessions")
            .update(_changes_payload(changes))
            .eq("id", str(session_id))
            .in_("status", sorted(str(status) for status in expected_statuses))
        )
        if expected_round is not None:
            query = query.eq("round_number", expected_round)
        with store_errors("compare_and_set"):
            response = query.execute()
        if not response.data:
            return None
        return _parse_session(response.data[0])


def _changes_payload(changes: SessionChanges) -> dict[str, object]:
    payload: dict[str, object] = {
        "status": str(changes.status),
        "updated_at": datetime.now(tz=UTC).isoformat(),
    }
    if changes.round_number is not None:
        payload["round_number"] = changes.round_number
    if changes.last_closed_round is not None:
        payload["last_closed_round"] = changes.last_closed_round
    if changes.end_reason is not None:
        payload["end_reason"] = changes.end_reason
    for name in ("started_at", "ended_at", "round_started_at"):
        value = getattr(changes, name)
        if value is not None:
            payload[name] = value.isoformat()
    return payload


def _parse_session(row: dict[str, object]) -> SessionRecord:
    try:
        config = SessionConfig.from_payload(row.get("session_config"), DEFAULT_CONFIG)
        return SessionRecord(
            id=UUID(str(row["id"])),
            group_id=UUID(str(row["group_id"])),
            status=SessionStatus(row["status"]),
            energy_level=EnergyLevel(row.get("energy_level") or "medium"),
            round_number=int(row["round_number"]),
            config=config,
            created_at=parse_timestamp(row.get("created_at"))
            or datetime.min.replace(tzinfo=UTC),
            started_at=parse_timestamp(row.get("started_at")),
            ended_at=parse_timestamp(row.get("ended_at")),
            round_started_at=parse_timestamp(row.get("round_started_at")),
            last_closed_round=int(row.get("last_closed_round") or 0),
            end_reason=row.get("end_reason"),
        )
    except (InvalidConfigError, KeyError, TypeError, ValueError) as exc:
        raise CorruptRecordError(
            f"Unreadable session row: {exc}", details={"id": row.get("id")}
        ) from exc
