"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from swipe_match.adapters.supabase_match_repository import SupabaseMatchRepository
from swipe_match.adapters.supabase_member_directory import SupabaseMemberDirectory
from swipe_match.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from swipe_match.adapters.supabase_vote_repository import SupabaseVoteRepository
from swipe_match.config import Settings, default_session_config, read_retry_policy
from swipe_match.services.events import EventPublisher, LoggingEventPublisher
from swipe_match.services.matches import MatchEngine, MatchRepository
from swipe_match.services.rounds import MemberDirectory, RoundController
from swipe_match.services.sessions import SessionManager, SessionRepository
from swipe_match.services.stats import StatsService
from swipe_match.services.votes import VoteLedger, VoteRepository


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_manager: SessionManager
    vote_ledger: VoteLedger
    match_engine: MatchEngine
    round_controller: RoundController
    stats_service: StatsService
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    publisher: EventPublisher | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    member_directory = SupabaseMemberDirectory(supabase_client)
    return wire_services(
        settings=resolved_settings,
        session_repository=session_repository,
        vote_repository=SupabaseVoteRepository(supabase_client),
        match_repository=SupabaseMatchRepository(supabase_client),
        member_directory=member_directory,
        publisher=publisher or LoggingEventPublisher(),
    )


def wire_services(  # noqa: PLR0913
    settings: Settings,
    session_repository: SessionRepository,
    vote_repository: VoteRepository,
    match_repository: MatchRepository,
    member_directory: MemberDirectory,
    publisher: EventPublisher,
) -> AppContainer:
    """Assemble the session core over any set of repository implementations."""
    retry = read_retry_policy(settings)
    session_manager = SessionManager(
        repository=session_repository,
        publisher=publisher,
        default_config=default_session_config(settings),
        retry=retry,
    )
    vote_ledger = VoteLedger(
        session_repository=session_repository,
        repository=vote_repository,
        retry=retry,
    )
    match_engine = MatchEngine(
        session_repository=session_repository,
        ledger=vote_ledger,
        repository=match_repository,
        retry=retry,
    )
    round_controller = RoundController(
        session_manager=session_manager,
        ledger=vote_ledger,
        match_engine=match_engine,
        member_directory=member_directory,
        retry=retry,
    )
    stats_service = StatsService(
        session_manager=session_manager,
        ledger=vote_ledger,
        member_directory=member_directory,
        retry=retry,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_manager=session_manager,
        vote_ledger=vote_ledger,
        match_engine=match_engine,
        round_controller=round_controller,
        stats_service=stats_service,
        close_resources=close_resources,
    )
