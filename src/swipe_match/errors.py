"""Error kinds raised by the session core."""


class SwipeMatchError(Exception):
    """Base exception for all session core errors."""

    def __init__(self, message: str, details: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidConfigError(SwipeMatchError):
    """Session config has an unusable value."""


class SessionNotFoundError(SwipeMatchError):
    """No session exists for the given id."""

    def __init__(self, session_id: object):
        super().__init__(
            f"Session {session_id} not found", details={"session_id": str(session_id)}
        )
        self.session_id = session_id


class InvalidTransitionError(SwipeMatchError):
    """Session is not in a state the transition can start from."""


class StaleRoundError(SwipeMatchError):
    """The targeted round is no longer the open round of the session."""


class RoundLimitExceededError(SwipeMatchError):
    """Advancing would exceed the session's maxRounds."""


class RoundNotClosedError(SwipeMatchError):
    """Matches were requested for a round that has not been closed."""


class SessionNotVotableError(SwipeMatchError):
    """Session is not accepting votes."""


class DuplicateVoteError(SwipeMatchError):
    """Voter already voted on this item in this round."""


class StoreUnavailableError(SwipeMatchError):
    """Backing store could not be reached; the operation may be retried."""


class CorruptRecordError(SwipeMatchError):
    """A stored row could not be parsed."""
