"""Match identifier resolution for tournaments and scrims."""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pubgstats.db_utils import insert_ignore
from pubgstats.errors import ConfigurationError, PersistenceError
from pubgstats.etl.base import MatchDataProvider, clean_match_ids
from pubgstats.models import TournamentMatch, utcnow

logger = logging.getLogger(__name__)


@dataclass
class LiveScope:
    """What a tournament or scrim says about where its matches come from.

    The tournament/scrim records themselves are managed elsewhere; this is
    the slice of them the pipeline needs.
    """

    scope_id: str
    custom_match_mode: bool = False
    custom_match_ids: list[str] = field(default_factory=list)
    remote_tournament_id: Optional[str] = None
    allow_non_custom: bool = False
    api_key: Optional[str] = None  # Overrides the configured default credential

    @property
    def only_custom_matches(self) -> bool:
        return self.custom_match_mode and not self.allow_non_custom


@dataclass
class ResolvedMatchIds:
    match_ids: list[str]
    source: str  # "custom", "cache" or "remote"


async def link_tournament_matches(
    session: AsyncSession,
    tournament_id: str,
    match_ids: list[str],
) -> int:
    """
    Record (tournament, match) pairs, ignoring pairs that already exist.

    created_at is spaced by one microsecond per id so that ordering by it
    reproduces the order the ids were given in.

    Returns:
        Number of ids submitted.

    Raises:
        PersistenceError: a write failed; no link of this call is kept.
    """
    match_ids = clean_match_ids(match_ids)
    if not tournament_id or not match_ids:
        return 0
    base = utcnow()
    match_id = None
    try:
        for offset, match_id in enumerate(match_ids):
            await insert_ignore(
                session,
                TournamentMatch,
                {
                    "tournament_id": tournament_id,
                    "match_id": match_id,
                    "created_at": base + timedelta(microseconds=offset),
                },
                conflict_columns=["tournament_id", "match_id"],
            )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"[RESOLVER] Linking {match_id} to {tournament_id} failed: {e}")
        raise PersistenceError(match_id, e) from e
    return len(match_ids)


async def get_linked_match_ids(session: AsyncSession, tournament_id: str) -> list[str]:
    """Previously linked match ids, first linked first."""
    if not tournament_id:
        return []
    result = await session.execute(
        select(TournamentMatch.match_id)
        .where(TournamentMatch.tournament_id == tournament_id)
        .order_by(TournamentMatch.created_at, TournamentMatch.match_id)
    )
    return [row[0] for row in result.all() if row[0]]


class MatchIdResolver:
    """Decides the authoritative match id list of a scope.

    Custom mode: the admin-configured list, verbatim (after cleaning).
    Tournament-linked mode: cached links unless `fresh` or none exist, then
    the remote tournament lookup. Whatever is resolved gets linked.
    """

    def __init__(self, session: AsyncSession, provider_factory):
        """
        Args:
            session: Database session for the link table.
            provider_factory: Zero-arg callable returning a MatchDataProvider.
                Only invoked when a remote lookup is actually needed, so a
                missing credential does not fail cached reads.
        """
        self.session = session
        self._provider_factory = provider_factory
        self._provider: Optional[MatchDataProvider] = None

    def _get_provider(self) -> MatchDataProvider:
        if self._provider is None:
            self._provider = self._provider_factory()
        return self._provider

    async def resolve(self, scope: LiveScope, fresh: bool = False) -> ResolvedMatchIds:
        """
        Resolve and link the match ids of a scope.

        Raises:
            ConfigurationError: custom mode without ids, or no remote
                tournament id and nothing cached, or nothing resolved.
        """
        if scope.custom_match_mode:
            match_ids = clean_match_ids(scope.custom_match_ids)
            if not match_ids:
                raise ConfigurationError("Custom match needs match IDs")
            source = "custom"
        else:
            match_ids = []
            source = "cache"
            if not fresh:
                match_ids = await get_linked_match_ids(self.session, scope.scope_id)
            if fresh or not match_ids:
                if not scope.remote_tournament_id:
                    raise ConfigurationError("PUBG tournament ID not configured")
                match_ids = await self._get_provider().fetch_tournament_match_ids(
                    scope.remote_tournament_id
                )
                source = "remote"
            match_ids = clean_match_ids(match_ids)

        if not match_ids:
            raise ConfigurationError("No match IDs available")

        await link_tournament_matches(self.session, scope.scope_id, match_ids)
        logger.info(f"[RESOLVER] Scope {scope.scope_id}: {len(match_ids)} match ids from {source}")
        return ResolvedMatchIds(match_ids=match_ids, source=source)
