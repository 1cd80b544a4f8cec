"""PUBG API data provider implementation."""

import asyncio
import logging
import time
from typing import Optional

import httpx

from pubgstats.config import get_settings
from pubgstats.errors import ConfigurationError, NotFoundError, TransportError
from pubgstats.etl.base import MatchDataProvider, clean_match_ids

logger = logging.getLogger(__name__)

settings = get_settings()


class PUBGAPIProvider(MatchDataProvider):
    """PUBG API client (JSON:API over HTTPS, bearer-token auth).

    One instance is bound to one credential. No retries, no rate limiting:
    a 404 becomes NotFoundError, anything else non-2xx becomes TransportError.
    """

    ACCEPT = "application/vnd.api+json"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        shard: Optional[str] = None,
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key or not str(api_key).strip():
            raise ConfigurationError("PUBG API key not configured")

        self._api_key = str(api_key).strip()
        base = (base_url or settings.PUBG_API_BASE_URL).rstrip("/")
        self.BASE_URL = f"{base}/shards/{shard or settings.PUBG_SHARD}"
        self.concurrency = max(1, concurrency or settings.PUBG_FETCH_CONCURRENCY)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout or settings.PUBG_TIMEOUT_SECONDS,
        )

    @property
    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": self.ACCEPT,
        }

    async def _request(
        self,
        path: str,
        endpoint: str,
        resource: str,
        identifier: str,
        params: Optional[dict] = None,
    ) -> dict:
        """
        GET one API path and decode the JSON body.

        Args:
            path: Path below the shard root, e.g. "/matches/abc".
            endpoint: Low-cardinality label for telemetry.
            resource: Human name of what is fetched, used in NotFoundError.
            identifier: Identifier of what is fetched, used in NotFoundError.
        """
        from pubgstats.telemetry import record_provider_error, record_provider_request

        url = f"{self.BASE_URL}{path}"
        start_time = time.time()
        try:
            response = await self.client.get(url, params=params, headers=self._headers)
        except httpx.TimeoutException as e:
            record_provider_error(endpoint, "timeout")
            logger.error(f"[PUBG] Timeout on {endpoint} {identifier}: {e}")
            raise TransportError(0, f"timeout: {e}", endpoint=endpoint) from e
        except httpx.RequestError as e:
            record_provider_error(endpoint, "request_error")
            logger.error(f"[PUBG] Request error on {endpoint} {identifier}: {e}")
            raise TransportError(0, str(e), endpoint=endpoint) from e

        latency_ms = (time.time() - start_time) * 1000
        record_provider_request(endpoint, response.status_code, latency_ms)

        if response.status_code == 404:
            raise NotFoundError(resource, identifier)
        if not response.is_success:
            logger.error(f"[PUBG] HTTP {response.status_code} on {endpoint} {identifier}")
            raise TransportError(response.status_code, response.text, endpoint=endpoint)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(response.status_code, f"invalid JSON body: {e}", endpoint=endpoint) from e

    async def fetch_match(self, match_id: str) -> dict:
        """Fetch one match document by id."""
        match_id = str(match_id).strip()
        return await self._request(f"/matches/{match_id}", "matches", "match", match_id)

    async def _fetch_or_record(self, match_id: str, failures: Optional[dict]) -> Optional[dict]:
        try:
            return await self.fetch_match(match_id)
        except (NotFoundError, TransportError) as e:
            if failures is None:
                raise
            failures[match_id] = e
            logger.warning(f"[PUBG] Skipping match {match_id}: {e}")
            return None

    async def fetch_matches_batch(
        self,
        match_ids: list[str],
        failures: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch documents one request per id; bounded fan-out when concurrency > 1."""
        cleaned = clean_match_ids(match_ids)
        if not cleaned:
            return []

        if self.concurrency <= 1:
            results = []
            for match_id in cleaned:
                results.append(await self._fetch_or_record(match_id, failures))
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def worker(match_id: str) -> Optional[dict]:
                async with semaphore:
                    return await self._fetch_or_record(match_id, failures)

            # gather keeps input order; raise the first error only after all settle
            gathered = await asyncio.gather(
                *(worker(match_id) for match_id in cleaned), return_exceptions=True
            )
            for item in gathered:
                if isinstance(item, BaseException):
                    raise item
            results = list(gathered)

        documents = [doc for doc in results if doc is not None]
        logger.info(f"[PUBG] Fetched {len(documents)}/{len(cleaned)} match documents")
        return documents

    async def fetch_tournament_match_ids(self, tournament_id: str) -> list[str]:
        """Match ids referenced by a remote tournament, de-duplicated in listed order."""
        tournament_id = str(tournament_id or "").strip()
        if not tournament_id:
            raise ConfigurationError("PUBG tournament ID not configured")
        payload = await self._request(
            f"/tournaments/{tournament_id}", "tournaments", "tournament", tournament_id
        )
        refs = (((payload.get("data") or {}).get("relationships") or {}).get("matches") or {}).get("data") or []
        match_ids = clean_match_ids(ref.get("id") for ref in refs if isinstance(ref, dict))
        logger.info(f"[PUBG] Tournament {tournament_id} lists {len(match_ids)} matches")
        return match_ids

    async def fetch_player_match_ids(self, player_name: str, limit: int = 50) -> list[str]:
        """Recent match ids for one player name."""
        player_name = str(player_name or "").strip()
        if not player_name:
            raise ConfigurationError("Player name is required")
        payload = await self._request(
            "/players",
            "players",
            "player",
            player_name,
            params={"filter[playerNames]": player_name},
        )
        players = payload.get("data") or []
        if not players:
            return []
        refs = ((players[0].get("relationships") or {}).get("matches") or {}).get("data") or []
        match_ids = clean_match_ids(ref.get("id") for ref in refs if isinstance(ref, dict))
        return match_ids[: max(0, limit)]

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "PUBGAPIProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
