import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from swipe_match.domain.events import SessionCompleted
from swipe_match.domain.sessions import SessionStatus
from swipe_match.domain.votes import VoteDecision
from swipe_match.services.rounds import OutcomeKind, quorum_size
from swipe_match.services.sessions import NO_CONSENSUS_REASON
from tests.conftest import START, Core, build_core

LIKE = VoteDecision.LIKE
DISLIKE = VoteDecision.DISLIKE


def _vote_round(core: Core, session_id: UUID, decisions: list[VoteDecision]) -> None:
    for decision in decisions:
        core.vote(session_id, "R1", decision)


@pytest.mark.parametrize(
    ("members", "fraction", "expected"),
    [(10, 0.3, 3), (4, 0.75, 3), (3, 0.5, 2), (4, 1.0, 4), (1, 0.01, 1)],
)
def test_quorum_size_rounds_up(members: int, fraction: float, expected: int) -> None:
    assert quorum_size(members, fraction) == expected


def test_consensus_completes_session_with_winner(core: Core) -> None:
    session = core.open_session(matchThresholdFraction=0.75)
    _vote_round(core, session.id, [LIKE, LIKE, LIKE, DISLIKE])

    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.COMPLETED
    assert outcome.winner is not None
    assert outcome.winner.item_id == "R1"
    assert outcome.winner.match_score == Decimal("0.75")
    finished = core.session_manager.get(session.id)
    assert finished.status == SessionStatus.COMPLETED
    assert finished.end_reason == "match found"
    assert core.publisher.events == [
        SessionCompleted(
            session_id=session.id,
            winning_item_id="R1",
            match_score=Decimal("0.75"),
        )
    ]


def test_no_consensus_advances_then_cancels_at_round_limit(core: Core) -> None:
    session = core.open_session(matchThresholdFraction=0.75, maxRounds=2)
    _vote_round(core, session.id, [LIKE, LIKE, DISLIKE, DISLIKE])

    first = core.round_controller.evaluate(session.id)

    assert first.kind == OutcomeKind.ADVANCED
    assert first.round_number == 1
    assert first.new_round == 2
    assert core.session_manager.get(session.id).status == SessionStatus.ACTIVE

    _vote_round(core, session.id, [LIKE, DISLIKE, DISLIKE, DISLIKE])
    second = core.round_controller.evaluate(session.id)

    assert second.kind == OutcomeKind.CANCELLED
    assert second.round_number == 2
    cancelled = core.session_manager.get(session.id)
    assert cancelled.status == SessionStatus.CANCELLED
    assert cancelled.end_reason == NO_CONSENSUS_REASON
    assert core.publisher.names() == ["session.round_advanced", "session.cancelled"]


def test_round_stays_open_below_quorum(core: Core) -> None:
    session = core.open_session()
    _vote_round(core, session.id, [LIKE, LIKE])

    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.NOT_READY
    assert core.session_manager.get(session.id).status == SessionStatus.ACTIVE
    assert core.publisher.events == []


def test_partial_quorum_fraction_closes_early(core: Core) -> None:
    session = core.open_session(quorumFraction=0.5, matchThresholdFraction=0.5)
    _vote_round(core, session.id, [LIKE, LIKE])

    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.COMPLETED
    assert outcome.winner is not None
    assert outcome.winner.match_score == Decimal("0.50")


def test_timeout_closes_round_without_quorum(core: Core) -> None:
    session = core.open_session(roundTimeoutSeconds=30, maxRounds=3)
    _vote_round(core, session.id, [LIKE])

    core.clock.advance(29)
    assert core.round_controller.evaluate(session.id).kind == OutcomeKind.NOT_READY

    core.clock.advance(1)
    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.ADVANCED
    advanced = core.session_manager.get(session.id)
    assert advanced.round_number == 2
    assert advanced.round_started_at == START + timedelta(seconds=30)


def test_timeout_is_measured_from_round_start(core: Core) -> None:
    session = core.open_session(roundTimeoutSeconds=30, maxRounds=3)
    core.clock.advance(30)
    core.round_controller.evaluate(session.id)

    core.clock.advance(10)
    assert core.round_controller.evaluate(session.id).kind == OutcomeKind.NOT_READY


def test_explicit_now_overrides_clock(core: Core) -> None:
    session = core.open_session(roundTimeoutSeconds=30)
    outcome = core.round_controller.evaluate(
        session.id, now=START + timedelta(minutes=5)
    )
    assert outcome.kind == OutcomeKind.ADVANCED


def test_trigger_for_previous_round_is_skipped(core: Core) -> None:
    session = core.open_session(maxRounds=3)
    core.clock.advance(30)
    core.round_controller.evaluate(session.id)

    outcome = core.round_controller.evaluate(session.id, round_number=1)

    assert outcome.kind == OutcomeKind.SKIPPED
    assert core.session_manager.get(session.id).round_number == 2


def test_trigger_for_round_zero_is_skipped(core: Core) -> None:
    session = core.open_session(roundTimeoutSeconds=30)

    outcome = core.round_controller.evaluate(
        session.id, round_number=0, now=START + timedelta(minutes=5)
    )

    assert outcome.kind == OutcomeKind.SKIPPED
    assert outcome.round_number == 0
    current = core.session_manager.get(session.id)
    assert current.status == SessionStatus.ACTIVE
    assert current.round_number == 1


def test_trigger_on_finished_session_is_skipped(core: Core) -> None:
    session = core.open_session()
    core.session_manager.cancel(session.id)
    assert core.round_controller.evaluate(session.id).kind == OutcomeKind.SKIPPED


def test_group_without_members_never_closes(core: Core) -> None:
    session = core.open_session()
    core.member_directory.counts[session.group_id] = 0
    core.clock.advance(3600)

    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.NOT_READY
    assert core.session_manager.get(session.id).status == SessionStatus.ACTIVE


def test_concurrent_triggers_settle_round_once() -> None:
    core = build_core(member_count=4)
    session = core.open_session(matchThresholdFraction=0.75)
    _vote_round(core, session.id, [LIKE, LIKE, LIKE, LIKE])
    barrier = threading.Barrier(8)

    def trigger() -> OutcomeKind:
        barrier.wait()
        return core.round_controller.evaluate(session.id, round_number=1).kind

    with ThreadPoolExecutor(max_workers=8) as pool:
        kinds = list(pool.map(lambda _: trigger(), range(8)))

    assert kinds.count(OutcomeKind.COMPLETED) == 1
    assert kinds.count(OutcomeKind.SKIPPED) == 7
    assert len(core.match_repository.matches) == 1
    assert core.publisher.names() == ["session.completed"]


def test_resume_settles_a_round_left_in_voting(core: Core) -> None:
    session = core.open_session(matchThresholdFraction=0.75)
    _vote_round(core, session.id, [LIKE, LIKE, LIKE, DISLIKE])
    core.session_manager.begin_round_closure(session.id, 1)

    outcome = core.round_controller.resume(session.id)

    assert outcome.kind == OutcomeKind.COMPLETED
    assert core.session_manager.get(session.id).status == SessionStatus.COMPLETED


def test_resume_ignores_sessions_not_in_voting(core: Core) -> None:
    session = core.open_session()
    assert core.round_controller.resume(session.id).kind == OutcomeKind.SKIPPED


def test_cancellation_during_settlement_is_superseded(core: Core) -> None:
    session = core.open_session(maxRounds=3)
    _vote_round(core, session.id, [DISLIKE, DISLIKE, DISLIKE, DISLIKE])
    compute_matches = core.match_engine.compute_matches

    def cancel_then_compute(session_id, round_number, member_count):  # noqa: ANN001, ANN202
        core.session_manager.cancel(session_id, "host left")
        return compute_matches(session_id, round_number, member_count)

    core.match_engine.compute_matches = cancel_then_compute  # type: ignore[method-assign]

    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.SUPERSEDED
    cancelled = core.session_manager.get(session.id)
    assert cancelled.status == SessionStatus.CANCELLED
    assert cancelled.end_reason == "host left"
    assert cancelled.round_number == 1


def test_round_number_is_monotonic_across_rounds(core: Core) -> None:
    session = core.open_session(maxRounds=4)
    rounds = []
    for _ in range(3):
        core.clock.advance(30)
        outcome = core.round_controller.evaluate(session.id)
        rounds.append(outcome.new_round)

    assert rounds == [2, 3, 4]
    core.clock.advance(30)
    assert core.round_controller.evaluate(session.id).kind == OutcomeKind.CANCELLED


def test_member_count_comes_from_directory(core: Core) -> None:
    session = core.open_session()
    core.member_directory.counts[session.group_id] = 2
    core.vote(session.id, "R1", LIKE, uuid4())
    core.vote(session.id, "R1", LIKE, uuid4())

    assert core.round_controller.evaluate(session.id).kind == OutcomeKind.COMPLETED


@pytest.mark.parametrize("decision", [LIKE, DISLIKE])
def test_late_settlement_does_not_touch_the_next_round(
    core: Core, decision: VoteDecision
) -> None:
    session = core.open_session(maxRounds=3)
    _vote_round(core, session.id, [decision] * 4)
    compute_matches = core.match_engine.compute_matches

    def settled_elsewhere(session_id, round_number, member_count):  # noqa: ANN001, ANN202
        matches = compute_matches(session_id, round_number, member_count)
        core.session_manager.advance_round(session_id)
        core.session_manager.begin_round_closure(session_id, 2)
        return matches

    core.match_engine.compute_matches = settled_elsewhere  # type: ignore[method-assign]

    outcome = core.round_controller.evaluate(session.id)

    assert outcome.kind == OutcomeKind.SUPERSEDED
    assert outcome.round_number == 1
    current = core.session_manager.get(session.id)
    assert current.status == SessionStatus.VOTING
    assert current.round_number == 2
