"""Tests for the PUBG API client (httpx.MockTransport)."""

import httpx
import pytest

from pubgstats.errors import ConfigurationError, NotFoundError, TransportError
from pubgstats.etl.pubg_api import PUBGAPIProvider


def _match_payload(match_id: str) -> dict:
    return {"data": {"type": "match", "id": match_id, "attributes": {}}, "included": []}


def _provider(handler, **kwargs) -> PUBGAPIProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PUBGAPIProvider(
        api_key="secret-key",
        base_url="https://api.test/",
        shard="steam",
        client=client,
        **kwargs,
    )


class TestConfiguration:
    @pytest.mark.parametrize("api_key", [None, "", "   "])
    def test_missing_key_is_configuration_error(self, api_key):
        with pytest.raises(ConfigurationError, match="PUBG API key not configured"):
            PUBGAPIProvider(api_key=api_key)

    def test_base_url_includes_shard(self):
        provider = _provider(lambda request: httpx.Response(200, json={}))
        assert provider.BASE_URL == "https://api.test/shards/steam"


class TestFetchMatch:
    """Single document fetch and error translation."""

    @pytest.mark.asyncio
    async def test_success_sends_auth_headers(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_match_payload("m1"))

        provider = _provider(handler)
        document = await provider.fetch_match("m1")

        assert document["data"]["id"] == "m1"
        assert seen[0].url == httpx.URL("https://api.test/shards/steam/matches/m1")
        assert seen[0].headers["Authorization"] == "Bearer secret-key"
        assert seen[0].headers["Accept"] == "application/vnd.api+json"

    @pytest.mark.asyncio
    async def test_404_is_not_found(self):
        provider = _provider(lambda request: httpx.Response(404, json={"errors": []}))
        with pytest.raises(NotFoundError) as exc_info:
            await provider.fetch_match("m1")
        assert exc_info.value.identifier == "m1"

    @pytest.mark.asyncio
    async def test_non_2xx_is_transport_error_with_body(self):
        provider = _provider(lambda request: httpx.Response(500, text="upstream exploded"))
        with pytest.raises(TransportError) as exc_info:
            await provider.fetch_match("m1")
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "upstream exploded"

    @pytest.mark.asyncio
    async def test_rate_limited_is_transport_error(self):
        provider = _provider(lambda request: httpx.Response(429, text="Too Many Requests"))
        with pytest.raises(TransportError) as exc_info:
            await provider.fetch_match("m1")
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        provider = _provider(handler)
        with pytest.raises(TransportError) as exc_info:
            await provider.fetch_match("m1")
        assert exc_info.value.status_code == 0

    @pytest.mark.asyncio
    async def test_invalid_json_is_transport_error(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(TransportError):
            await provider.fetch_match("m1")


class TestFetchMatchesBatch:
    """One request per de-duplicated id, results in input order."""

    @pytest.mark.asyncio
    async def test_deduplicates(self):
        requested = []

        def handler(request):
            match_id = request.url.path.rsplit("/", 1)[-1]
            requested.append(match_id)
            return httpx.Response(200, json=_match_payload(match_id))

        provider = _provider(handler)
        documents = await provider.fetch_matches_batch(["a", " a", "b", "", "a"])

        assert requested == ["a", "b"]
        assert [d["data"]["id"] for d in documents] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failures_collected_when_requested(self):
        def handler(request):
            match_id = request.url.path.rsplit("/", 1)[-1]
            if match_id == "bad":
                return httpx.Response(404)
            return httpx.Response(200, json=_match_payload(match_id))

        provider = _provider(handler)
        failures = {}
        documents = await provider.fetch_matches_batch(["a", "bad", "c"], failures=failures)

        assert [d["data"]["id"] for d in documents] == ["a", "c"]
        assert isinstance(failures["bad"], NotFoundError)

    @pytest.mark.asyncio
    async def test_first_failure_raises_without_collector(self):
        provider = _provider(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(TransportError):
            await provider.fetch_matches_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_concurrent_fetch_keeps_order(self):
        def handler(request):
            match_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json=_match_payload(match_id))

        provider = _provider(handler, concurrency=4)
        ids = [f"m{i}" for i in range(10)]
        documents = await provider.fetch_matches_batch(ids)
        assert [d["data"]["id"] for d in documents] == ids

    @pytest.mark.asyncio
    async def test_empty_input(self):
        provider = _provider(lambda request: httpx.Response(500))
        assert await provider.fetch_matches_batch([]) == []


class TestLookups:
    """Tournament and player match id lookups."""

    @pytest.mark.asyncio
    async def test_tournament_match_ids(self):
        payload = {
            "data": {
                "type": "tournament",
                "id": "as-1",
                "relationships": {
                    "matches": {
                        "data": [
                            {"type": "match", "id": "m2"},
                            {"type": "match", "id": "m1"},
                            {"type": "match", "id": "m2"},
                        ]
                    }
                },
            }
        }
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json=payload)

        provider = _provider(handler)
        assert await provider.fetch_tournament_match_ids("as-1") == ["m2", "m1"]
        assert seen == ["/shards/steam/tournaments/as-1"]

    @pytest.mark.asyncio
    async def test_tournament_id_required(self):
        provider = _provider(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError):
            await provider.fetch_tournament_match_ids("  ")

    @pytest.mark.asyncio
    async def test_player_match_ids(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "type": "player",
                            "id": "account.1",
                            "relationships": {
                                "matches": {"data": [{"type": "match", "id": f"m{i}"} for i in range(5)]}
                            },
                        }
                    ]
                },
            )

        provider = _provider(handler)
        assert await provider.fetch_player_match_ids("Alpha", limit=3) == ["m0", "m1", "m2"]
        assert seen[0].url.params["filter[playerNames]"] == "Alpha"

    @pytest.mark.asyncio
    async def test_unknown_player_has_no_matches(self):
        provider = _provider(lambda request: httpx.Response(200, json={"data": []}))
        assert await provider.fetch_player_match_ids("Nobody") == []

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        provider = PUBGAPIProvider(api_key="k", client=client)
        await provider.close()
        assert client.is_closed is False
        await client.aclose()
