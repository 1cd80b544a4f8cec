"""Shared fixtures: in-memory database and match document builders."""

import os

# Settings are read at import time by pubgstats.database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import pytest_asyncio

from pubgstats.database import build_engine, build_session_maker, init_db


def build_participant(
    participant_id: str,
    name: str,
    kills: int = 0,
    win_place: int = 0,
    death_type: str = "byplayer",
    assists: int = 0,
    revives: int = 0,
    damage: float = 0.0,
) -> dict:
    return {
        "type": "participant",
        "id": participant_id,
        "attributes": {
            "shardId": "steam",
            "stats": {
                "name": name,
                "playerId": f"account.{name.lower()}",
                "kills": kills,
                "winPlace": win_place,
                "deathType": death_type,
                "assists": assists,
                "revives": revives,
                "damageDealt": damage,
                "DBNOs": 1,
                "timeSurvived": 1500.5,
                "walkDistance": 2300.25,
            },
        },
    }


def build_roster(roster_id: str, team_id, rank: int, participant_ids: list[str]) -> dict:
    stats = {"rank": rank}
    if team_id is not None:
        stats["teamId"] = team_id
    return {
        "type": "roster",
        "id": roster_id,
        "attributes": {
            "shardId": "steam",
            "won": "true" if rank == 1 else "false",
            "stats": stats,
        },
        "relationships": {
            "participants": {
                "data": [{"type": "participant", "id": pid} for pid in participant_ids]
            }
        },
    }


def build_document(
    match_id: str,
    included: list[dict],
    custom: bool = True,
    map_name: str = "Baltic_Main",
    created_at: str = "2026-01-10T12:00:00Z",
) -> dict:
    return {
        "data": {
            "type": "match",
            "id": match_id,
            "attributes": {
                "createdAt": created_at,
                "duration": 1800,
                "gameMode": "squad-fpp",
                "mapName": map_name,
                "matchType": "custom" if custom else "official",
                "isCustomMatch": custom,
                "seasonState": "progress",
                "shardId": "steam",
                "titleId": "bluehole-pubg",
                "stats": None,
                "tags": None,
            },
        },
        "included": included,
    }


def build_simple_match(match_id: str, custom: bool = True, kills: int = 3) -> dict:
    """One winning two-player roster and one losing one-player roster."""
    return build_document(
        match_id,
        [
            build_roster(f"{match_id}-r1", 7, 1, [f"{match_id}-p1", f"{match_id}-p2"]),
            build_roster(f"{match_id}-r2", 12, 2, [f"{match_id}-p3"]),
            build_participant(f"{match_id}-p1", "Alpha", kills=kills, win_place=1, death_type="alive"),
            build_participant(f"{match_id}-p2", "Bravo", kills=1, win_place=1, death_type="alive"),
            build_participant(f"{match_id}-p3", "Charlie", kills=0, win_place=2),
            {
                "type": "asset",
                "id": f"{match_id}-a1",
                "attributes": {
                    "URL": f"https://telemetry.example/{match_id}.json",
                    "createdAt": "2026-01-10T12:30:00Z",
                    "description": "",
                    "name": "telemetry",
                },
            },
        ],
        custom=custom,
    )


@pytest.fixture
def builders():
    """Document builder functions, grouped for test modules."""

    class Builders:
        participant = staticmethod(build_participant)
        roster = staticmethod(build_roster)
        document = staticmethod(build_document)
        simple_match = staticmethod(build_simple_match)

    return Builders


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = build_engine("sqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    session_maker = build_session_maker(engine)
    async with session_maker() as session:
        yield session
