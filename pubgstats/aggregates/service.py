"""
Aggregation service for tournament leaderboards.

Turns an ordered list of match documents into per-match summaries, team and
player aggregates, and top-10 leaderboards. Pure computation over
already-fetched documents; the only state is the injected TTL cache.
"""

import logging
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Optional

from pubgstats.aggregates.scoring import (
    DEATH_ALIVE,
    DEATH_KILLED,
    DEATH_SUICIDE,
    DEATH_UNKNOWN,
    classify_death_type,
    total_points,
    resolve_death_reason,
    safe_div,
)
from pubgstats.config import get_settings
from pubgstats.etl.documents import included_of_type, match_attributes, roster_participant_ids
from pubgstats.etl.maps import normalize_map_name
from pubgstats.utils.cache import TTLCache

logger = logging.getLogger(__name__)

# Configuration
LEADERBOARD_SIZE = 10
DEFAULT_LIMIT = 12
NO_TEAM_ID = "-"


@dataclass
class AggregationParams:
    """Identity and options of one aggregation call."""

    identity_key: str
    limit: int = DEFAULT_LIMIT
    cache_bypass: bool = False
    only_custom_matches: bool = False
    logical_tournament_id: Optional[str] = None
    # Size of the full id list before truncation; defaults to len(documents)
    match_count: Optional[int] = None

    @property
    def cache_key(self) -> tuple[str, int, str]:
        return (self.identity_key, self.limit, "custom" if self.only_custom_matches else "tournament")


@dataclass
class MatchOutcome:
    match_id: str
    map_name: Optional[str]
    game_mode: Optional[str]
    created_at: Optional[str]
    duration: Optional[int]
    match_type: Optional[str]
    is_custom_match: bool
    winner_team_id: Optional[str]
    winner_team_name: Optional[str]


@dataclass
class TeamStat:
    team_id: str
    team_name: str
    matches_played: int = 0
    wins: int = 0
    total_kills: int = 0
    total_points: int = 0
    avg_placement: float = 0.0
    win_rate: float = 0.0  # Percentage
    players: list[str] = field(default_factory=list)


@dataclass
class PlayerStat:
    player_name: str
    matches_played: int = 0
    wins: int = 0
    total_kills: int = 0
    assists: int = 0
    revives: int = 0
    deaths: int = 0
    damage: float = 0.0  # whole points once finalized
    total_points: int = 0
    avg_placement: float = 0.0
    kd_ratio: float = 0.0
    death_reason: str = "cannot determine"


@dataclass
class AggregationResult:
    tournament_id: Optional[str]
    match_count: int
    matches: list[MatchOutcome]
    team_stats: list[TeamStat]
    player_stats: list[PlayerStat]
    team_leaderboard: list[TeamStat]
    player_leaderboard: list[PlayerStat]

    def to_dict(self) -> dict:
        return {
            "tournament": {"id": self.tournament_id, "match_count": self.match_count},
            "matches": [asdict(m) for m in self.matches],
            "team_stats": [asdict(t) for t in self.team_stats],
            "player_stats": [asdict(p) for p in self.player_stats],
            "leaderboards": {
                "teams": [asdict(t) for t in self.team_leaderboard],
                "players": [asdict(p) for p in self.player_leaderboard],
            },
        }


class _TeamAccumulator:
    __slots__ = ("stat", "placement_total", "player_names")

    def __init__(self, team_id: str):
        self.stat = TeamStat(team_id=team_id, team_name=f"Team {team_id}")
        self.placement_total = 0
        self.player_names: dict[str, None] = {}  # insertion-ordered set


class _PlayerAccumulator:
    __slots__ = ("stat", "placement_total", "death_counts")

    def __init__(self, player_name: str):
        self.stat = PlayerStat(player_name=player_name)
        self.placement_total = 0
        self.death_counts = {DEATH_ALIVE: 0, DEATH_KILLED: 0, DEATH_SUICIDE: 0, DEATH_UNKNOWN: 0}


def _int_stat(stats: dict, key: str) -> int:
    value = stats.get(key)
    if isinstance(value, bool):
        return 0
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _float_stat(stats: dict, key: str) -> float:
    value = stats.get(key)
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _participant_rank(stats: dict) -> int:
    return _int_stat(stats, "winPlace") or _int_stat(stats, "rank")


def _roster_rank(stats: dict) -> int:
    return _int_stat(stats, "rank") or _int_stat(stats, "winPlace")


def _top(items: list, size: int = LEADERBOARD_SIZE) -> list:
    # sorted() is stable: ties keep first-encountered order
    return sorted(items, key=lambda item: item.total_points, reverse=True)[:size]


class AggregationService:
    """Computes leaderboards from match documents, with a TTL cache in front."""

    def __init__(self, cache: TTLCache):
        self.cache = cache

    def aggregate(self, documents: list[dict], params: AggregationParams) -> AggregationResult:
        """
        Aggregate documents in the order given.

        Steps:
        1. Unless bypassed, serve a cached result younger than the TTL.
        2. Truncate to params.limit (no re-sorting).
        3. Skip non-custom documents when only_custom_matches is set.
        4. Per document: participant stats, rosters, winner (first rank-1 roster).
        5. Derive rates, build leaderboards, cache and return.
        """
        from pubgstats.telemetry import record_cache_lookup

        key = params.cache_key
        if params.cache_bypass:
            record_cache_lookup("bypass")
        else:
            hit, cached = self.cache.get(key)
            if hit:
                record_cache_lookup("hit")
                logger.info(f"[AGGREGATE] Cache hit for {key}")
                return cached
            record_cache_lookup("miss")

        documents = documents if isinstance(documents, list) else []
        limited = documents[: max(0, params.limit)]

        matches: list[MatchOutcome] = []
        teams: dict[str, _TeamAccumulator] = {}
        players: dict[str, _PlayerAccumulator] = {}

        for document in limited:
            if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
                continue
            attributes = match_attributes(document)
            is_custom = attributes.get("isCustomMatch") is True
            if params.only_custom_matches and not is_custom:
                continue
            winner_team_id = self._accumulate_document(document, teams, players)
            matches.append(
                MatchOutcome(
                    match_id=str(document["data"].get("id")),
                    map_name=normalize_map_name(attributes.get("mapName")),
                    game_mode=attributes.get("gameMode"),
                    created_at=attributes.get("createdAt"),
                    duration=attributes.get("duration"),
                    match_type=attributes.get("matchType"),
                    is_custom_match=is_custom,
                    winner_team_id=winner_team_id,
                    winner_team_name=f"Team {winner_team_id}" if winner_team_id is not None else None,
                )
            )

        team_stats = [self._finalize_team(acc) for acc in teams.values()]
        player_stats = [self._finalize_player(acc) for acc in players.values()]

        result = AggregationResult(
            tournament_id=params.logical_tournament_id or params.identity_key,
            match_count=params.match_count if params.match_count is not None else len(documents),
            matches=matches,
            team_stats=team_stats,
            player_stats=player_stats,
            team_leaderboard=_top(team_stats),
            player_leaderboard=_top(player_stats),
        )

        self.cache.set(key, result)
        logger.info(
            f"[AGGREGATE] {params.identity_key}: {len(matches)} matches, "
            f"{len(team_stats)} teams, {len(player_stats)} players"
        )
        return result

    def _accumulate_document(
        self,
        document: dict,
        teams: dict[str, _TeamAccumulator],
        players: dict[str, _PlayerAccumulator],
    ) -> Optional[str]:
        """Fold one document into the accumulators; returns the winner team id."""
        participant_stats: dict[str, dict] = {}

        for participant in included_of_type(document, "participant"):
            stats = (participant.get("attributes") or {}).get("stats") or {}
            participant_stats[str(participant.get("id"))] = stats

            name = stats.get("name") or "Unknown"
            acc = players.get(name)
            if acc is None:
                acc = players[name] = _PlayerAccumulator(name)
            stat = acc.stat

            kills = _int_stat(stats, "kills")
            rank = _participant_rank(stats)
            stat.matches_played += 1
            stat.total_kills += kills
            stat.assists += _int_stat(stats, "assists")
            stat.revives += _int_stat(stats, "revives")
            stat.damage += _float_stat(stats, "damageDealt")
            stat.total_points += total_points(kills, rank)
            acc.placement_total += rank
            if rank == 1:
                stat.wins += 1

            bucket = classify_death_type(stats.get("deathType"))
            acc.death_counts[bucket] += 1
            if bucket in (DEATH_KILLED, DEATH_SUICIDE):
                stat.deaths += 1

        winner_team_id: Optional[str] = None
        for roster in included_of_type(document, "roster"):
            stats = (roster.get("attributes") or {}).get("stats") or {}
            raw_team_id = stats.get("teamId")
            team_id = str(raw_team_id) if raw_team_id is not None else NO_TEAM_ID
            rank = _roster_rank(stats)
            if rank == 1 and winner_team_id is None:
                winner_team_id = team_id

            members = [
                participant_stats[pid]
                for pid in roster_participant_ids(roster)
                if pid in participant_stats
            ]
            roster_kills = sum(_int_stat(member, "kills") for member in members)

            acc = teams.get(team_id)
            if acc is None:
                acc = teams[team_id] = _TeamAccumulator(team_id)
            stat = acc.stat
            stat.matches_played += 1
            if rank == 1:
                stat.wins += 1
            stat.total_kills += roster_kills
            stat.total_points += total_points(roster_kills, rank)
            acc.placement_total += rank
            for member in members:
                if member.get("name"):
                    acc.player_names.setdefault(member["name"], None)

        return winner_team_id

    @staticmethod
    def _finalize_team(acc: _TeamAccumulator) -> TeamStat:
        stat = acc.stat
        stat.avg_placement = round(safe_div(acc.placement_total, stat.matches_played), 2)
        stat.win_rate = round(safe_div(stat.wins, stat.matches_played) * 100, 1)
        stat.players = list(acc.player_names)
        return stat

    @staticmethod
    def _finalize_player(acc: _PlayerAccumulator) -> PlayerStat:
        stat = acc.stat
        stat.avg_placement = round(safe_div(acc.placement_total, stat.matches_played), 2)
        # Kills per match played: per-match deaths are not reliable in the API
        stat.kd_ratio = round(safe_div(stat.total_kills, stat.matches_played), 2)
        stat.damage = round(stat.damage)
        stat.death_reason = resolve_death_reason(acc.death_counts)
        return stat


@lru_cache
def get_aggregation_service() -> AggregationService:
    """Process-wide aggregation service with a cache sized from settings."""
    settings = get_settings()
    return AggregationService(
        TTLCache(
            ttl=settings.AGGREGATION_CACHE_TTL_SECONDS,
            max_entries=settings.AGGREGATION_CACHE_MAX_ENTRIES,
        )
    )
