"""Public and admin API endpoints: live leaderboards, match read-through, ingestion.

Public endpoints are rate limited; /api/admin/* requires the X-API-Key header.
Pipeline errors are turned into JSON responses by the handler in main.py.
"""

import logging
from dataclasses import asdict
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pubgstats.config import get_settings
from pubgstats.database import get_async_session
from pubgstats.etl.normalizer import match_exists
from pubgstats.etl.pipeline import LivePipeline, create_live_pipeline
from pubgstats.etl.resolver import LiveScope
from pubgstats.security import limiter, verify_api_key

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api", tags=["pubg"])


class LiveScopeRequest(BaseModel):
    scope_id: str = Field(..., min_length=1)
    custom_match_mode: bool = False
    custom_match_ids: list[str] | str = Field(default_factory=list)
    remote_tournament_id: Optional[str] = None
    allow_non_custom: bool = False
    api_key: Optional[str] = None

    def to_scope(self) -> LiveScope:
        custom_ids = self.custom_match_ids
        if isinstance(custom_ids, str):
            custom_ids = custom_ids.split(",")
        return LiveScope(
            scope_id=self.scope_id,
            custom_match_mode=self.custom_match_mode,
            custom_match_ids=list(custom_ids),
            remote_tournament_id=self.remote_tournament_id or None,
            allow_non_custom=self.allow_non_custom,
            api_key=self.api_key or None,
        )


class AggregateRequest(BaseModel):
    match_ids: list[str] | str
    limit: Optional[int] = Field(default=None, ge=1)
    fresh: bool = False
    only_custom: bool = False


class NormalizeRequest(BaseModel):
    match_ids: Optional[list[str]] = None
    limit: Optional[int] = Field(default=None, ge=1)


async def get_live_pipeline(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[LivePipeline, None]:
    """One pipeline per request; its providers are closed afterwards."""
    async with create_live_pipeline(session) as pipeline:
        yield pipeline


@router.post("/live")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def live_leaderboard(
    request: Request,
    body: LiveScopeRequest,
    limit: Optional[int] = Query(default=None, ge=1),
    fresh: bool = Query(default=False),
    pipeline: LivePipeline = Depends(get_live_pipeline),
):
    """
    Live leaderboard of a tournament or scrim.

    fresh=true re-resolves match ids remotely and bypasses the aggregation cache.
    """
    return await pipeline.resolve_and_aggregate(body.to_scope(), limit=limit, fresh=fresh)


@router.post("/aggregate")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def aggregate_match_ids(
    request: Request,
    body: AggregateRequest,
    pipeline: LivePipeline = Depends(get_live_pipeline),
):
    """Leaderboard over an explicit list of match ids."""
    return await pipeline.aggregate_match_ids(
        body.match_ids,
        limit=body.limit,
        fresh=body.fresh,
        only_custom=body.only_custom,
    )


@router.get("/pubg/matches/{match_id}")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def get_match(
    request: Request,
    match_id: str,
    pipeline: LivePipeline = Depends(get_live_pipeline),
):
    """One match document, from the store when present, else from the PUBG API."""
    source, document = await pipeline.get_or_fetch_match(match_id)
    return {"source": source, "match": document}


@router.get("/pubg/player-matches")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def get_player_matches(
    request: Request,
    name: str = Query(..., min_length=1),
    limit: int = Query(default=50, ge=1),
    include_meta: bool = Query(default=False, alias="includeMeta"),
    only_custom: bool = Query(default=False, alias="onlyCustom"),
    pipeline: LivePipeline = Depends(get_live_pipeline),
):
    """Recent match ids of a player; with includeMeta, per-match summaries."""
    name = name.strip()
    if not include_meta:
        match_ids = await pipeline.player_match_ids(name, limit=limit)
        return {"player": name, "matches": match_ids}

    summaries = await pipeline.player_match_summaries(name, limit=limit, only_custom=only_custom)
    return {
        "player": name,
        "matches": [asdict(summary) for summary in summaries],
        "meta": {
            "limited_to": min(limit, settings.PLAYER_MATCHES_MAX_LIMIT, settings.PLAYER_MATCHES_META_LIMIT),
            "only_custom": only_custom,
        },
    }


# =============================================================================
# ADMIN
# =============================================================================


@router.get("/admin/matches/exists/{match_id}")
@limiter.limit("60/minute")
async def admin_match_exists(
    request: Request,
    match_id: str,
    session: AsyncSession = Depends(get_async_session),
    _: bool = Depends(verify_api_key),
):
    """Whether a match document is already stored."""
    match_id = match_id.strip()
    return {"match_id": match_id, "exists": await match_exists(session, match_id)}


@router.post("/admin/matches/normalize")
@limiter.limit("10/minute")
async def admin_normalize_matches(
    request: Request,
    body: NormalizeRequest,
    pipeline: LivePipeline = Depends(get_live_pipeline),
    _: bool = Depends(verify_api_key),
):
    """Re-run normalization over stored match payloads."""
    logger.info(f"[ADMIN] Normalize request: {body}")
    return await pipeline.normalizer.normalize_stored_matches(
        match_ids=body.match_ids,
        limit=body.limit,
    )


@router.post("/admin/ingest")
@limiter.limit("5/minute")
async def admin_ingest(
    request: Request,
    body: LiveScopeRequest,
    limit: int = Query(default=0, ge=0),
    pipeline: LivePipeline = Depends(get_live_pipeline),
    _: bool = Depends(verify_api_key),
):
    """Fetch, store and normalize every match of a tournament or scrim."""
    logger.info(f"[ADMIN] Ingest request for scope {body.scope_id} (limit={limit})")
    return await pipeline.ingest_scope(body.to_scope(), limit=limit)
