"""Flatten PUBG match documents into relational rows.

A document is the JSON:API shaped payload of /matches/{id}:

    {
        "data": {"type": "match", "id": ..., "attributes": {...}},
        "included": [
            {"type": "roster", "id": ..., "attributes": {"stats": {...}, "won": "true"},
             "relationships": {"participants": {"data": [{"type": "participant", "id": ...}]}}},
            {"type": "participant", "id": ..., "attributes": {"stats": {...}}},
            {"type": "asset", "id": ..., "attributes": {"URL": ..., ...}},
        ],
    }

Parsing is pure; persistence lives in etl/normalizer.py.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pubgstats.etl.maps import normalize_map_name

logger = logging.getLogger(__name__)


# participant stats key -> match_participants column
PARTICIPANT_INT_STATS = {
    "DBNOs": "dbnos",
    "assists": "assists",
    "boosts": "boosts",
    "headshotKills": "headshot_kills",
    "heals": "heals",
    "killPlace": "kill_place",
    "killStreaks": "kill_streaks",
    "kills": "kills",
    "revives": "revives",
    "roadKills": "road_kills",
    "teamKills": "team_kills",
    "vehicleDestroys": "vehicle_destroys",
    "weaponsAcquired": "weapons_acquired",
    "winPlace": "win_place",
}

PARTICIPANT_FLOAT_STATS = {
    "damageDealt": "damage_dealt",
    "longestKill": "longest_kill",
    "rideDistance": "ride_distance",
    "swimDistance": "swim_distance",
    "timeSurvived": "time_survived",
    "walkDistance": "walk_distance",
}


@dataclass
class ParsedMatch:
    """Row dicts for every table touched by one document, in write order."""

    match_id: str
    match: dict
    rosters: list[dict] = field(default_factory=list)
    participants: list[dict] = field(default_factory=list)
    assets: list[dict] = field(default_factory=list)
    memberships: list[tuple[str, str]] = field(default_factory=list)  # (roster_id, participant_id)


def to_float(value: Any) -> Optional[float]:
    """Numeric coercion; blanks, garbage and non-finite values become None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    return int(number) if number is not None else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into aware UTC; naive input is taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def document_id(document: Any) -> Optional[str]:
    """Return the match id of a document, or None when it has none."""
    if not isinstance(document, dict):
        return None
    data = document.get("data")
    if not isinstance(data, dict):
        return None
    match_id = data.get("id")
    return str(match_id) if match_id else None


def match_attributes(document: dict) -> dict:
    return (document.get("data") or {}).get("attributes") or {}


def is_custom_match(document: dict) -> bool:
    return match_attributes(document).get("isCustomMatch") is True


def included_of_type(document: dict, kind: str) -> list[dict]:
    included = document.get("included")
    if not isinstance(included, list):
        return []
    return [item for item in included if isinstance(item, dict) and item.get("type") == kind]


def roster_participant_ids(roster: dict) -> list[str]:
    refs = ((roster.get("relationships") or {}).get("participants") or {}).get("data") or []
    return [str(ref["id"]) for ref in refs if isinstance(ref, dict) and ref.get("id")]


def _parse_match_row(match_id: str, document: dict) -> dict:
    attributes = match_attributes(document)
    return {
        "match_id": match_id,
        "payload": document,
        "created_at": parse_timestamp(attributes.get("createdAt")),
        "duration": to_int(attributes.get("duration")),
        "game_mode": attributes.get("gameMode") or None,
        "map_name": attributes.get("mapName") or None,
        "map_display_name": normalize_map_name(attributes.get("mapName")),
        "match_type": attributes.get("matchType") or None,
        "is_custom_match": attributes.get("isCustomMatch") is True,
        "season_state": attributes.get("seasonState") or None,
        "shard_id": attributes.get("shardId") or None,
        "title_id": attributes.get("titleId") or None,
        "stats": attributes.get("stats") or {},
        "tags": attributes.get("tags") or {},
    }


def _parse_roster_row(match_id: str, roster: dict) -> dict:
    attributes = roster.get("attributes") or {}
    stats = attributes.get("stats") or {}
    team_id = stats.get("teamId")
    won = attributes.get("won")
    return {
        "roster_id": str(roster["id"]),
        "match_id": match_id,
        "team_id": str(team_id) if team_id is not None and team_id != "" else None,
        "rank": to_int(stats.get("rank")),
        "won": won is True or won == "true",
        "shard_id": attributes.get("shardId") or None,
    }


def _parse_participant_row(match_id: str, participant: dict, roster_id: Optional[str]) -> dict:
    attributes = participant.get("attributes") or {}
    stats = attributes.get("stats") or {}
    row = {
        "participant_id": str(participant["id"]),
        "match_id": match_id,
        "roster_id": roster_id,
        "player_id": stats.get("playerId") or None,
        "player_name": stats.get("name") or None,
        "shard_id": attributes.get("shardId") or None,
        "death_type": stats.get("deathType") or None,
        "raw_stats": stats,
    }
    for key, column in PARTICIPANT_INT_STATS.items():
        row[column] = to_int(stats.get(key))
    for key, column in PARTICIPANT_FLOAT_STATS.items():
        row[column] = to_float(stats.get(key))
    return row


def _parse_asset_row(match_id: str, asset: dict) -> dict:
    attributes = asset.get("attributes") or {}
    return {
        "asset_id": str(asset["id"]),
        "match_id": match_id,
        "url": attributes.get("URL") or None,
        "created_at": parse_timestamp(attributes.get("createdAt")),
        "description": attributes.get("description") or None,
        "name": attributes.get("name") or None,
    }


def parse_document(document: dict) -> Optional[ParsedMatch]:
    """
    Flatten one document into row dicts.

    Pass 1 walks rosters and records which participants each one lists.
    Pass 2 walks participants and assets; a participant's roster_id comes
    from pass 1 and stays None when no roster lists it. If two rosters list
    the same participant, the later roster wins the pointer while both pairs
    are kept as memberships.

    Returns:
        ParsedMatch, or None when the document has no match id.
    """
    match_id = document_id(document)
    if match_id is None:
        return None

    parsed = ParsedMatch(match_id=match_id, match=_parse_match_row(match_id, document))
    included = document.get("included")
    if not isinstance(included, list):
        included = []

    participant_roster: dict[str, str] = {}
    seen_pairs: set[tuple[str, str]] = set()

    # Pass 1: rosters
    for item in included:
        if not isinstance(item, dict) or item.get("type") != "roster" or not item.get("id"):
            continue
        roster_row = _parse_roster_row(match_id, item)
        parsed.rosters.append(roster_row)
        for participant_id in roster_participant_ids(item):
            participant_roster[participant_id] = roster_row["roster_id"]
            pair = (roster_row["roster_id"], participant_id)
            if pair not in seen_pairs:
                seen_pairs.add(pair)
                parsed.memberships.append(pair)

    # Pass 2: participants and assets
    for item in included:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        kind = item.get("type")
        if kind == "participant":
            participant_id = str(item["id"])
            parsed.participants.append(
                _parse_participant_row(match_id, item, participant_roster.get(participant_id))
            )
        elif kind == "asset":
            parsed.assets.append(_parse_asset_row(match_id, item))

    # Memberships may only reference participants this document contains
    known = {row["participant_id"] for row in parsed.participants}
    dangling = [pair for pair in parsed.memberships if pair[1] not in known]
    if dangling:
        logger.warning(
            f"[NORMALIZE] Match {match_id}: {len(dangling)} roster references to missing participants"
        )
        parsed.memberships = [pair for pair in parsed.memberships if pair[1] in known]

    return parsed
