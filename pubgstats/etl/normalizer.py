"""Relational normalizer: match documents -> matches / rosters / participants."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pubgstats.db_utils import insert_ignore, upsert
from pubgstats.errors import PersistenceError
from pubgstats.etl.documents import parse_document
from pubgstats.models import (
    Match,
    MatchAsset,
    MatchParticipant,
    MatchRoster,
    MatchRosterParticipant,
    utcnow,
)

logger = logging.getLogger(__name__)


class MatchNormalizer:
    """Idempotent upsert of match documents into the relational schema.

    Writes per document go Match -> Rosters -> Participants/Assets ->
    memberships, so a failure part-way never leaves a participant pointing
    at a roster that was not written. Each document commits on its own;
    a failure rolls back only that document.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def normalize(self, document: dict) -> Optional[str]:
        """
        Upsert every row derived from one document and commit.

        Returns:
            The match id, or None when the document has no id (skipped).

        Raises:
            PersistenceError: a write failed; this document's changes are rolled back.
        """
        from pubgstats.telemetry import record_normalization

        parsed = parse_document(document)
        if parsed is None:
            logger.warning("[NORMALIZE] Skipping document without data.id")
            return None

        match_id = parsed.match_id
        now = utcnow()
        match_values = {**parsed.match, "ingested_at": now, "updated_at": now}

        try:
            # ingested_at is left out of the update set so it keeps the first ingestion time
            await upsert(
                self.session,
                Match,
                match_values,
                conflict_columns=["match_id"],
                update_columns=[k for k in match_values if k not in ("match_id", "ingested_at")],
            )
            for roster in parsed.rosters:
                await upsert(self.session, MatchRoster, roster, conflict_columns=["roster_id"])
            for participant in parsed.participants:
                await upsert(self.session, MatchParticipant, participant, conflict_columns=["participant_id"])
            for asset in parsed.assets:
                await upsert(self.session, MatchAsset, asset, conflict_columns=["asset_id"])
            for roster_id, participant_id in parsed.memberships:
                await insert_ignore(
                    self.session,
                    MatchRosterParticipant,
                    {"roster_id": roster_id, "participant_id": participant_id},
                    conflict_columns=["roster_id", "participant_id"],
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            record_normalization("failed")
            logger.error(f"[NORMALIZE] Match {match_id} failed: {e}")
            raise PersistenceError(match_id, e) from e

        record_normalization("ok")
        logger.debug(
            f"[NORMALIZE] Match {match_id}: {len(parsed.rosters)} rosters, "
            f"{len(parsed.participants)} participants, {len(parsed.assets)} assets"
        )
        return match_id

    async def normalize_many(self, documents: list[dict]) -> dict:
        """
        Normalize documents one by one; a failure does not stop siblings.

        Returns:
            {"normalized": [ids], "failed": [ids]}
        """
        normalized: list[str] = []
        failed: list[str] = []
        for document in documents:
            try:
                match_id = await self.normalize(document)
            except PersistenceError as e:
                failed.append(e.match_id)
                continue
            if match_id is not None:
                normalized.append(match_id)
        return {"normalized": normalized, "failed": failed}

    async def normalize_stored_matches(
        self,
        match_ids: Optional[list[str]] = None,
        limit: Optional[int] = None,
    ) -> dict:
        """
        Re-run normalization over payloads already in the matches table.

        Args:
            match_ids: Restrict to these ids (default: all stored matches).
            limit: Max number of matches to process, oldest ingestion first.

        Returns:
            {"normalized": count, "failed": [ids]}
        """
        query = select(Match.payload).order_by(Match.ingested_at, Match.match_id)
        if match_ids:
            query = query.where(Match.match_id.in_(match_ids))
        if limit:
            query = query.limit(int(limit))
        result = await self.session.execute(query)
        payloads = [row[0] for row in result.all()]

        outcome = await self.normalize_many(payloads)
        logger.info(
            f"[NORMALIZE] Re-normalized {len(outcome['normalized'])}/{len(payloads)} stored matches"
        )
        return {"normalized": len(outcome["normalized"]), "failed": outcome["failed"]}


async def get_stored_matches(session: AsyncSession, match_ids: list[str]) -> dict[str, dict]:
    """Stored documents for the given ids (absent ids are simply missing)."""
    if not match_ids:
        return {}
    result = await session.execute(
        select(Match.match_id, Match.payload).where(Match.match_id.in_(list(match_ids)))
    )
    return {match_id: payload for match_id, payload in result.all()}


async def get_all_stored_matches(session: AsyncSession) -> list[dict]:
    """Every stored document, oldest ingestion first."""
    result = await session.execute(
        select(Match.payload).order_by(Match.ingested_at, Match.match_id)
    )
    return [row[0] for row in result.all()]


async def match_exists(session: AsyncSession, match_id: str) -> bool:
    result = await session.execute(select(Match.match_id).where(Match.match_id == match_id))
    return result.scalar_one_or_none() is not None
