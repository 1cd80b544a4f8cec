"""Abstract base class for match data providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class MatchSummary:
    """Data transfer object for a one-line view of a match."""

    match_id: str
    is_custom_match: bool
    created_at: Optional[datetime]
    map_name: Optional[str]  # Display name (Erangel, not Baltic_Main)
    game_mode: Optional[str]
    match_type: Optional[str]


def clean_match_ids(match_ids) -> list[str]:
    """
    Trim, drop blanks and de-duplicate identifiers, keeping first occurrence.

    Accepts a list or a comma-separated string.
    """
    if not match_ids:
        return []
    if isinstance(match_ids, str):
        candidates = match_ids.split(",")
    else:
        candidates = list(match_ids)
    seen: set[str] = set()
    cleaned: list[str] = []
    for raw in candidates:
        if raw is None:
            continue
        match_id = str(raw).strip()
        if match_id and match_id not in seen:
            seen.add(match_id)
            cleaned.append(match_id)
    return cleaned


class MatchDataProvider(ABC):
    """Abstract base class for match document providers.

    Implementations never retry: a failure surfaces as NotFoundError or
    TransportError and the caller decides what to do.
    """

    @abstractmethod
    async def fetch_match(self, match_id: str) -> dict:
        """
        Fetch one match document.

        Raises:
            NotFoundError: the match does not exist.
            TransportError: any other non-2xx or network failure.
        """
        pass

    @abstractmethod
    async def fetch_matches_batch(
        self,
        match_ids: list[str],
        failures: Optional[dict] = None,
    ) -> list[dict]:
        """
        Fetch several documents, one request per de-duplicated identifier.

        Args:
            match_ids: Identifiers to fetch, in the order results should come back.
            failures: When given, per-identifier errors are stored here
                (id -> exception) and skipped instead of raised.

        Returns:
            Documents in input order (minus failures).
        """
        pass

    @abstractmethod
    async def fetch_tournament_match_ids(self, tournament_id: str) -> list[str]:
        """Match ids listed under a remote tournament, de-duplicated."""
        pass

    @abstractmethod
    async def fetch_player_match_ids(self, player_name: str, limit: int = 50) -> list[str]:
        """Most recent match ids of one player, at most `limit`."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
