"""Live data pipeline: resolve -> read store -> fetch missing -> normalize -> aggregate."""

import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pubgstats.aggregates.service import (
    AggregationParams,
    AggregationService,
    get_aggregation_service,
)
from pubgstats.config import get_settings
from pubgstats.errors import ConfigurationError
from pubgstats.etl.base import MatchDataProvider, MatchSummary, clean_match_ids
from pubgstats.etl.documents import document_id, is_custom_match, match_attributes, parse_timestamp
from pubgstats.etl.maps import normalize_map_name
from pubgstats.etl.normalizer import (
    MatchNormalizer,
    get_all_stored_matches,
    get_stored_matches,
)
from pubgstats.etl.pubg_api import PUBGAPIProvider
from pubgstats.etl.resolver import LiveScope, MatchIdResolver, get_linked_match_ids, link_tournament_matches

logger = logging.getLogger(__name__)

settings = get_settings()

SOURCE_STORE = "db"
SOURCE_FETCHED = "db+pubg"
SOURCE_FETCHED_CUSTOM = "db+pubg-custom"


def summarize_document(document: dict) -> MatchSummary:
    """One-line view of a match document."""
    attributes = match_attributes(document)
    return MatchSummary(
        match_id=document_id(document) or "",
        is_custom_match=is_custom_match(document),
        created_at=parse_timestamp(attributes.get("createdAt")),
        map_name=normalize_map_name(attributes.get("mapName")),
        game_mode=attributes.get("gameMode"),
        match_type=attributes.get("matchType"),
    )


def _chunks(items: list, size: int) -> list[list]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


class LivePipeline:
    """Orchestrates live leaderboards, ingestion and read-through match access.

    One instance serves one request: it owns its providers (one per
    credential, created on first use) and closes them in close().
    """

    def __init__(
        self,
        session: AsyncSession,
        aggregation: AggregationService,
        provider_factory: Optional[Callable[[str], MatchDataProvider]] = None,
    ):
        """
        Args:
            session: Database session used for reads and normalization.
            aggregation: Shared aggregation service (holds the TTL cache).
            provider_factory: Callable taking a credential and returning a
                MatchDataProvider. Defaults to PUBGAPIProvider.
        """
        self.session = session
        self.aggregation = aggregation
        self.normalizer = MatchNormalizer(session)
        self._provider_factory = provider_factory or PUBGAPIProvider
        self._providers: dict[str, MatchDataProvider] = {}

    def _get_provider(self, api_key: Optional[str] = None) -> MatchDataProvider:
        """Provider for a credential; the scope's own key wins over the configured one."""
        credential = (api_key or settings.PUBG_API_KEY or "").strip()
        if not credential:
            raise ConfigurationError("PUBG API key not configured")
        provider = self._providers.get(credential)
        if provider is None:
            provider = self._provider_factory(credential)
            self._providers[credential] = provider
        return provider

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()

    async def __aenter__(self) -> "LivePipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _fetch_and_store(
        self,
        match_ids: list[str],
        api_key: Optional[str],
        batch_size: Optional[int] = None,
    ) -> tuple[list[str], list[str]]:
        """
        Fetch documents for match_ids and normalize them.

        Per-match fetch and persistence failures are collected, not raised.

        Returns:
            (stored ids, failed ids), both in input order.
        """
        if not match_ids:
            return [], []
        provider = self._get_provider(api_key)
        stored: list[str] = []
        failed: list[str] = []
        for chunk in _chunks(match_ids, batch_size or len(match_ids)):
            failures: dict = {}
            documents = await provider.fetch_matches_batch(chunk, failures=failures)
            outcome = await self.normalizer.normalize_many(documents)
            stored.extend(outcome["normalized"])
            failed.extend(match_id for match_id in chunk if match_id in failures)
            failed.extend(outcome["failed"])
        if failed:
            logger.warning(f"[LIVE] {len(failed)} matches could not be fetched or stored: {failed}")
        return stored, failed

    async def resolve_and_aggregate(
        self,
        scope: LiveScope,
        limit: Optional[int] = None,
        fresh: bool = False,
    ) -> dict:
        """
        Live tournament/scrim view.

        Only the first `limit` resolved ids are read or fetched; match_count
        still reports every resolved id. `fresh` forces the remote tournament
        lookup and bypasses the aggregation cache.

        Returns:
            Aggregation result dict plus source label and per-id provenance.

        Raises:
            ConfigurationError: see MatchIdResolver.resolve, or no credential
                when something must be fetched.
            TransportError / NotFoundError: the remote tournament lookup failed.
        """
        if limit is None or limit < 1:
            limit = settings.LIVE_DEFAULT_LIMIT

        resolver = MatchIdResolver(self.session, lambda: self._get_provider(scope.api_key))
        resolved = await resolver.resolve(scope, fresh=fresh)
        match_ids = resolved.match_ids
        limited_ids = match_ids[:limit]

        stored = await get_stored_matches(self.session, limited_ids)
        missing_ids = [match_id for match_id in limited_ids if match_id not in stored]

        fetched_ids: list[str] = []
        failed_ids: list[str] = []
        if missing_ids:
            fetched_ids, failed_ids = await self._fetch_and_store(missing_ids, scope.api_key)
            stored = await get_stored_matches(self.session, limited_ids)

        documents = [stored[match_id] for match_id in limited_ids if match_id in stored]
        result = self.aggregation.aggregate(
            documents,
            AggregationParams(
                identity_key=scope.scope_id,
                limit=limit,
                cache_bypass=fresh,
                only_custom_matches=scope.only_custom_matches,
                logical_tournament_id=scope.remote_tournament_id or scope.scope_id,
                match_count=len(match_ids),
            ),
        )

        if not missing_ids:
            source = SOURCE_STORE
        elif scope.custom_match_mode:
            source = SOURCE_FETCHED_CUSTOM
        else:
            source = SOURCE_FETCHED

        logger.info(
            f"[LIVE] Scope {scope.scope_id}: {len(documents)}/{len(limited_ids)} documents, "
            f"{len(fetched_ids)} fetched, {len(failed_ids)} failed, source={source}"
        )
        return {
            "source": source,
            "tournament_id": scope.scope_id,
            "pubg_tournament_id": scope.remote_tournament_id,
            "resolved_from": resolved.source,
            "served_from_store": [m for m in limited_ids if m not in missing_ids],
            "fetched": fetched_ids,
            "failed": failed_ids,
            **result.to_dict(),
        }

    async def ingest_scope(self, scope: LiveScope, limit: int = 0) -> dict:
        """
        Store and normalize every match of a scope.

        Ids come from the custom list, else the remote tournament when one
        is configured, else previously linked ids. Already-stored matches
        are re-normalized from their stored payload instead of re-fetched.

        Returns:
            {"tournament_id", "match_ids", "fetched", "skipped_existing",
             "normalized", "failed"}
        """
        if scope.custom_match_mode:
            match_ids = clean_match_ids(scope.custom_match_ids)
        elif scope.remote_tournament_id:
            provider = self._get_provider(scope.api_key)
            match_ids = await provider.fetch_tournament_match_ids(scope.remote_tournament_id)
        else:
            match_ids = await get_linked_match_ids(self.session, scope.scope_id)

        match_ids = clean_match_ids(match_ids)
        if limit and limit > 0:
            match_ids = match_ids[:limit]
        if not match_ids:
            raise ConfigurationError("No match IDs available")

        await link_tournament_matches(self.session, scope.scope_id, match_ids)

        stored = await get_stored_matches(self.session, match_ids)
        existing_ids = [match_id for match_id in match_ids if match_id in stored]
        missing_ids = [match_id for match_id in match_ids if match_id not in stored]

        fetched_ids, failed_ids = await self._fetch_and_store(
            missing_ids, scope.api_key, batch_size=settings.INGEST_BATCH_SIZE
        )
        renormalized = {"normalized": 0, "failed": []}
        if existing_ids:
            renormalized = await self.normalizer.normalize_stored_matches(existing_ids)

        result = {
            "tournament_id": scope.scope_id,
            "match_ids": len(match_ids),
            "fetched": len(fetched_ids),
            "skipped_existing": len(existing_ids),
            "normalized": len(fetched_ids) + renormalized["normalized"],
            "failed": failed_ids + renormalized["failed"],
        }
        logger.info(f"[LIVE] Ingest complete: {result}")
        return result

    async def get_or_fetch_match(self, match_id: str, api_key: Optional[str] = None) -> tuple[str, dict]:
        """
        Read-through access to one match.

        Returns:
            ("db", document) when stored, else ("api", document) after storing it.

        Raises:
            NotFoundError: the remote API does not know the match.
            PersistenceError: the fetched document could not be stored.
        """
        match_id = str(match_id or "").strip()
        if not match_id:
            raise ConfigurationError("Match ID is required")

        stored = await get_stored_matches(self.session, [match_id])
        if match_id in stored:
            return SOURCE_STORE, stored[match_id]

        document = await self._get_provider(api_key).fetch_match(match_id)
        await self.normalizer.normalize(document)
        return "api", document

    async def player_match_ids(
        self,
        player_name: str,
        limit: int = 50,
        api_key: Optional[str] = None,
    ) -> list[str]:
        """Recent match ids of a player, at most PLAYER_MATCHES_MAX_LIMIT."""
        limit = min(max(0, limit), settings.PLAYER_MATCHES_MAX_LIMIT)
        return await self._get_provider(api_key).fetch_player_match_ids(player_name, limit=limit)

    async def player_match_summaries(
        self,
        player_name: str,
        limit: int = 50,
        only_custom: bool = False,
        api_key: Optional[str] = None,
    ) -> list[MatchSummary]:
        """
        Summaries of a player's recent matches, storing documents on the way.

        At most PLAYER_MATCHES_META_LIMIT matches are summarized; matches that
        fail to fetch are left out.
        """
        match_ids = await self.player_match_ids(player_name, limit=limit, api_key=api_key)
        match_ids = match_ids[: settings.PLAYER_MATCHES_META_LIMIT]

        stored = await get_stored_matches(self.session, match_ids)
        missing_ids = [match_id for match_id in match_ids if match_id not in stored]
        if missing_ids:
            await self._fetch_and_store(missing_ids, api_key)
            stored = await get_stored_matches(self.session, match_ids)

        summaries = [summarize_document(stored[m]) for m in match_ids if m in stored]
        if only_custom:
            summaries = [summary for summary in summaries if summary.is_custom_match]
        return summaries

    async def aggregate_match_ids(
        self,
        match_ids,
        limit: Optional[int] = None,
        fresh: bool = False,
        only_custom: bool = False,
        api_key: Optional[str] = None,
    ) -> dict:
        """Aggregate an explicit id list (list or comma-separated string)."""
        cleaned = clean_match_ids(match_ids)
        if not cleaned:
            raise ConfigurationError("No match IDs provided")
        if limit is None or limit < 1:
            limit = settings.LIVE_DEFAULT_LIMIT
        limited_ids = cleaned[:limit]

        stored = await get_stored_matches(self.session, limited_ids)
        missing_ids = [match_id for match_id in limited_ids if match_id not in stored]
        if missing_ids:
            await self._fetch_and_store(missing_ids, api_key)
            stored = await get_stored_matches(self.session, limited_ids)

        documents = [stored[match_id] for match_id in limited_ids if match_id in stored]
        result = self.aggregation.aggregate(
            documents,
            AggregationParams(
                identity_key=f"matchids:{','.join(cleaned)}",
                limit=limit,
                cache_bypass=fresh,
                only_custom_matches=only_custom,
                match_count=len(cleaned),
            ),
        )
        return result.to_dict()

    async def get_stored_matches(self, match_ids) -> dict[str, dict]:
        return await get_stored_matches(self.session, clean_match_ids(match_ids))

    async def get_all_stored_matches(self) -> list[dict]:
        return await get_all_stored_matches(self.session)


def create_live_pipeline(session: AsyncSession) -> LivePipeline:
    """Factory function to create a pipeline backed by the PUBG API and the shared cache."""
    return LivePipeline(session=session, aggregation=get_aggregation_service())
