"""Voting progress and session statistics."""

from collections import Counter
from dataclasses import dataclass, field
from uuid import UUID

from swipe_match.domain.stats import ItemTally, SessionStatistics, VotingProgress
from swipe_match.domain.votes import VoteDecision
from swipe_match.services.retry import RetryPolicy
from swipe_match.services.rounds import MemberDirectory, quorum_size
from swipe_match.services.sessions import SessionManager
from swipe_match.services.votes import VoteLedger


@dataclass
class StatsService:
    """Read-only reporting over the vote ledger."""

    session_manager: SessionManager
    ledger: VoteLedger
    member_directory: MemberDirectory
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def voting_progress(self, session_id: UUID) -> VotingProgress:
        """Return participation and per-item tallies for the current round."""
        session = self.session_manager.get(session_id)
        votes = self.ledger.list_votes(session_id, session.round_number)
        member_count = self.retry.read(
            lambda: self.member_directory.count_active_members(session.group_id),
            "count_active_members",
        )
        items: dict[str, ItemTally] = {}
        for vote in votes:
            tally = items.setdefault(vote.item_id, ItemTally())
            if vote.decision == VoteDecision.LIKE:
                tally.likes += 1
            elif vote.decision == VoteDecision.DISLIKE:
                tally.dislikes += 1
            else:
                tally.skips += 1
        return VotingProgress(
            session_id=session_id,
            round_number=session.round_number,
            active_member_count=member_count,
            voter_count=len({vote.voter_id for vote in votes}),
            quorum=quorum_size(member_count, session.config.quorum_fraction),
            items=items,
        )

    def session_statistics(self, session_id: UUID) -> SessionStatistics:
        """Return vote totals across all rounds of a session."""
        self.session_manager.get(session_id)
        votes = self.ledger.list_votes(session_id)
        by_decision = Counter(str(vote.decision) for vote in votes)
        return SessionStatistics(
            session_id=session_id,
            total_votes=len(votes),
            votes_by_round=dict(Counter(vote.round_number for vote in votes)),
            votes_by_decision={
                str(decision): by_decision.get(str(decision), 0)
                for decision in VoteDecision
            },
            votes_by_voter=dict(Counter(vote.voter_id for vote in votes)),
        )
