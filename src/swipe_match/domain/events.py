"""Events emitted for the notification collaborator."""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class RoundAdvanced:
    session_id: UUID
    new_round: int

    name = "session.round_advanced"

    def payload(self) -> dict[str, object]:
        return {"sessionId": str(self.session_id), "newRound": self.new_round}


@dataclass(frozen=True)
class SessionCompleted:
    session_id: UUID
    winning_item_id: str | None
    match_score: Decimal | None

    name = "session.completed"

    def payload(self) -> dict[str, object]:
        return {
            "sessionId": str(self.session_id),
            "winningItemId": self.winning_item_id,
            "matchScore": str(self.match_score)
            if self.match_score is not None
            else None,
        }


@dataclass(frozen=True)
class SessionCancelled:
    session_id: UUID
    reason: str

    name = "session.cancelled"

    def payload(self) -> dict[str, object]:
        return {"sessionId": str(self.session_id), "reason": self.reason}


SessionEvent = RoundAdvanced | SessionCompleted | SessionCancelled
