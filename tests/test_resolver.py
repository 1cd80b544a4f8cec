"""Tests for match id resolution and tournament links."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from pubgstats.errors import ConfigurationError, PersistenceError
from pubgstats.etl.resolver import (
    LiveScope,
    MatchIdResolver,
    get_linked_match_ids,
    link_tournament_matches,
)


def _provider(remote_ids=None):
    provider = MagicMock()
    provider.fetch_tournament_match_ids = AsyncMock(return_value=remote_ids or [])
    return provider


class TestTournamentLinks:
    """Insert-if-absent links that keep encounter order."""

    @pytest.mark.asyncio
    async def test_order_preserved(self, session):
        await link_tournament_matches(session, "t1", ["m3", "m1", "m2"])
        assert await get_linked_match_ids(session, "t1") == ["m3", "m1", "m2"]

    @pytest.mark.asyncio
    async def test_relinking_is_idempotent(self, session):
        await link_tournament_matches(session, "t1", ["m1", "m2"])
        await link_tournament_matches(session, "t1", ["m2", "m3"])
        assert await get_linked_match_ids(session, "t1") == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_links_are_per_tournament(self, session):
        await link_tournament_matches(session, "t1", ["m1"])
        await link_tournament_matches(session, "t2", ["m2"])
        assert await get_linked_match_ids(session, "t2") == ["m2"]

    @pytest.mark.asyncio
    async def test_link_timestamps_are_utc(self):
        session = MagicMock()
        session.commit = AsyncMock()

        with patch("pubgstats.etl.resolver.insert_ignore", new_callable=AsyncMock) as mock_insert:
            await link_tournament_matches(session, "t1", ["m1", "m2"])

        stamps = [call.args[2]["created_at"] for call in mock_insert.await_args_list]
        assert all(stamp.tzinfo is not None and stamp.utcoffset().total_seconds() == 0 for stamp in stamps)
        assert stamps[0] < stamps[1]

    @pytest.mark.asyncio
    async def test_failed_write_raises_persistence_error(self):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "sqlite"
        session.execute = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("locked")))
        session.commit = AsyncMock()
        session.rollback = AsyncMock()

        with pytest.raises(PersistenceError) as exc_info:
            await link_tournament_matches(session, "t1", ["m1", "m2"])

        assert exc_info.value.match_id == "m1"
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestCustomMode:
    """Admin-curated id lists."""

    @pytest.mark.asyncio
    async def test_uses_list_without_remote_lookup(self, session):
        factory = MagicMock()
        resolver = MatchIdResolver(session, factory)

        resolved = await resolver.resolve(
            LiveScope("t1", custom_match_mode=True, custom_match_ids=[" m1", "m2", "m1"])
        )

        assert resolved.match_ids == ["m1", "m2"]
        assert resolved.source == "custom"
        factory.assert_not_called()
        assert await get_linked_match_ids(session, "t1") == ["m1", "m2"]

    @pytest.mark.asyncio
    async def test_empty_list_is_an_error(self, session):
        resolver = MatchIdResolver(session, MagicMock())
        with pytest.raises(ConfigurationError, match="Custom match needs match IDs"):
            await resolver.resolve(LiveScope("t1", custom_match_mode=True, custom_match_ids=[" ", ""]))


class TestTournamentLinkedMode:
    """Cached links first, remote lookup when fresh or nothing is cached."""

    @pytest.mark.asyncio
    async def test_cached_read_skips_remote(self, session):
        await link_tournament_matches(session, "t1", ["m1", "m2"])
        provider = _provider(["m9"])
        resolver = MatchIdResolver(session, lambda: provider)

        resolved = await resolver.resolve(LiveScope("t1", remote_tournament_id="as-1"))

        assert resolved.match_ids == ["m1", "m2"]
        assert resolved.source == "cache"
        provider.fetch_tournament_match_ids.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fresh_read_calls_remote_once(self, session):
        await link_tournament_matches(session, "t1", ["m1", "m2"])
        provider = _provider(["m3", "m4"])
        resolver = MatchIdResolver(session, lambda: provider)

        resolved = await resolver.resolve(LiveScope("t1", remote_tournament_id="as-1"), fresh=True)

        assert resolved.match_ids == ["m3", "m4"]
        assert resolved.source == "remote"
        provider.fetch_tournament_match_ids.assert_awaited_once_with("as-1")
        # Remote result is linked on top of the history
        assert await get_linked_match_ids(session, "t1") == ["m1", "m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_empty_cache_falls_back_to_remote(self, session):
        provider = _provider(["m1"])
        resolver = MatchIdResolver(session, lambda: provider)

        resolved = await resolver.resolve(LiveScope("t1", remote_tournament_id="as-1"))

        assert resolved.match_ids == ["m1"]
        provider.fetch_tournament_match_ids.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_remote_id_without_cache_is_an_error(self, session):
        resolver = MatchIdResolver(session, MagicMock())
        with pytest.raises(ConfigurationError, match="PUBG tournament ID not configured"):
            await resolver.resolve(LiveScope("t1"))

    @pytest.mark.asyncio
    async def test_remote_returns_nothing(self, session):
        resolver = MatchIdResolver(session, lambda: _provider([]))
        with pytest.raises(ConfigurationError, match="No match IDs available"):
            await resolver.resolve(LiveScope("t1", remote_tournament_id="as-1"))

    def test_only_custom_matches_flag(self):
        assert LiveScope("t1", custom_match_mode=True).only_custom_matches is True
        assert LiveScope("t1", custom_match_mode=True, allow_non_custom=True).only_custom_matches is False
        assert LiveScope("t1").only_custom_matches is False
