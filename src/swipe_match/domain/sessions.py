"""Domain models for group swipe sessions."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from swipe_match.errors import InvalidConfigError

CONFIG_VERSION = 1

_CONFIG_KEYS = {
    "version",
    "maxRounds",
    "quorumFraction",
    "matchThresholdFraction",
    "roundTimeoutSeconds",
}


class SessionStatus(StrEnum):
    """Lifecycle states of a session."""

    PENDING = "pending"
    ACTIVE = "active"
    VOTING = "voting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED})
OPEN_STATUSES = frozenset(
    {SessionStatus.PENDING, SessionStatus.ACTIVE, SessionStatus.VOTING}
)


class EnergyLevel(StrEnum):
    """Catalog filter hint; never interpreted by the session core."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SessionConfig:
    """Recognized session options plus any unknown keys kept verbatim."""

    max_rounds: int
    quorum_fraction: float
    match_threshold_fraction: float
    round_timeout_seconds: int
    version: int = CONFIG_VERSION
    extra: dict[str, object] = field(default_factory=dict)

    def validate(self) -> "SessionConfig":
        """Raise InvalidConfigError unless every recognized option is usable."""
        if self.max_rounds < 1:
            raise InvalidConfigError(
                "maxRounds must be at least 1",
                details={"maxRounds": self.max_rounds},
            )
        for name, value in (
            ("quorumFraction", self.quorum_fraction),
            ("matchThresholdFraction", self.match_threshold_fraction),
        ):
            if not 0 < value <= 1:
                raise InvalidConfigError(
                    f"{name} must be in (0, 1]", details={name: value}
                )
        if self.round_timeout_seconds < 1:
            raise InvalidConfigError(
                "roundTimeoutSeconds must be positive",
                details={"roundTimeoutSeconds": self.round_timeout_seconds},
            )
        return self

    def to_payload(self) -> dict[str, object]:
        """Serialize to the stored JSON shape."""
        payload = dict(self.extra)
        payload.update(
            {
                "version": self.version,
                "maxRounds": self.max_rounds,
                "quorumFraction": self.quorum_fraction,
                "matchThresholdFraction": self.match_threshold_fraction,
                "roundTimeoutSeconds": self.round_timeout_seconds,
            }
        )
        return payload

    @classmethod
    def from_payload(
        cls, payload: dict[str, object] | None, defaults: "SessionConfig"
    ) -> "SessionConfig":
        """Build a config from a JSON payload, filling gaps from defaults."""
        raw = dict(payload or {})
        try:
            config = cls(
                max_rounds=_as_int(raw.get("maxRounds", defaults.max_rounds)),
                quorum_fraction=float(
                    raw.get("quorumFraction", defaults.quorum_fraction)
                ),
                match_threshold_fraction=float(
                    raw.get("matchThresholdFraction", defaults.match_threshold_fraction)
                ),
                round_timeout_seconds=_as_int(
                    raw.get("roundTimeoutSeconds", defaults.round_timeout_seconds)
                ),
                version=_as_int(raw.get("version", CONFIG_VERSION)),
                extra={k: v for k, v in raw.items() if k not in _CONFIG_KEYS},
            )
        except (TypeError, ValueError) as exc:
            raise InvalidConfigError(
                f"Malformed session config: {exc}", details={"config": raw}
            ) from exc
        return config.validate()


DEFAULT_CONFIG = SessionConfig(
    max_rounds=5,
    quorum_fraction=1.0,
    match_threshold_fraction=1.0,
    round_timeout_seconds=30,
)


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted group session."""

    id: UUID
    group_id: UUID
    status: SessionStatus
    energy_level: EnergyLevel
    round_number: int
    config: SessionConfig
    created_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None
    round_started_at: datetime | None = None
    last_closed_round: int = 0
    end_reason: str | None = None

    def is_round_closed(self, round_number: int) -> bool:
        return 1 <= round_number <= self.last_closed_round


@dataclass(frozen=True)
class SessionChanges:
    """Fields written by a conditional session update; None means unchanged."""

    status: SessionStatus
    round_number: int | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    round_started_at: datetime | None = None
    last_closed_round: int | None = None
    end_reason: str | None = None

    def apply(self, session: SessionRecord) -> SessionRecord:
        """Return a copy of the session with these changes applied."""
        updates: dict[str, object] = {"status": self.status}
        for name in (
            "round_number",
            "started_at",
            "ended_at",
            "round_started_at",
            "last_closed_round",
            "end_reason",
        ):
            value = getattr(self, name)
            if value is not None:
                updates[name] = value
        return replace(session, **updates)


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        raise TypeError("boolean is not a valid integer option")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value} is not a whole number")
    return int(value)  # type: ignore[arg-type]
