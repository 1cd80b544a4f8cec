"""Database models using SQLModel."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Match(SQLModel, table=True):
    """One completed game session, plus the raw document it was parsed from."""

    __tablename__ = "matches"

    match_id: str = Field(primary_key=True, max_length=64, description="PUBG match UUID")
    payload: dict = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False),
        description="Full match document as returned by the API",
    )

    created_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), index=True),
        description="When the match was played",
    )
    duration: Optional[int] = Field(default=None, description="Seconds")
    game_mode: Optional[str] = Field(default=None, max_length=50, description="squad, squad-fpp, ...")
    map_name: Optional[str] = Field(default=None, max_length=50, description="Codename, e.g. Baltic_Main")
    map_display_name: Optional[str] = Field(default=None, max_length=50, description="e.g. Erangel")
    match_type: Optional[str] = Field(default=None, max_length=50, description="official, custom, competitive, ...")
    is_custom_match: bool = Field(default=False)
    season_state: Optional[str] = Field(default=None, max_length=50)
    shard_id: Optional[str] = Field(default=None, max_length=50)
    title_id: Optional[str] = Field(default=None, max_length=50)

    stats: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    tags: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    ingested_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False),
        description="First ingestion",
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Last (re)ingestion",
    )

    # Relationships
    rosters: list["MatchRoster"] = Relationship(
        back_populates="match",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )
    participants: list["MatchParticipant"] = Relationship(
        back_populates="match",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )
    assets: list["MatchAsset"] = Relationship(
        back_populates="match",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )


class MatchAsset(SQLModel, table=True):
    """Telemetry asset reference attached to a match."""

    __tablename__ = "match_assets"

    asset_id: str = Field(primary_key=True, max_length=64)
    match_id: str = Field(
        sa_column=Column(
            String(64), ForeignKey("matches.match_id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    url: Optional[str] = Field(default=None, max_length=500)
    created_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    description: Optional[str] = Field(default=None)
    name: Optional[str] = Field(default=None, max_length=100)

    match: Optional[Match] = Relationship(back_populates="assets")


class MatchRoster(SQLModel, table=True):
    """A team's participation record within one match."""

    __tablename__ = "match_rosters"

    roster_id: str = Field(primary_key=True, max_length=64)
    match_id: str = Field(
        sa_column=Column(
            String(64), ForeignKey("matches.match_id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    team_id: Optional[str] = Field(default=None, max_length=20, description="Raw teamId from the API")
    rank: Optional[int] = Field(default=None, description="Final placement")
    won: bool = Field(default=False)
    shard_id: Optional[str] = Field(default=None, max_length=50)

    match: Optional[Match] = Relationship(back_populates="rosters")


class MatchParticipant(SQLModel, table=True):
    """One player's performance record within one match."""

    __tablename__ = "match_participants"

    participant_id: str = Field(primary_key=True, max_length=64)
    match_id: str = Field(
        sa_column=Column(
            String(64), ForeignKey("matches.match_id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    # Current roster pointer; NULL when the participant is in no roster
    roster_id: Optional[str] = Field(
        default=None,
        sa_column=Column(
            String(64), ForeignKey("match_rosters.roster_id", ondelete="SET NULL"), nullable=True, index=True
        ),
    )
    player_id: Optional[str] = Field(default=None, max_length=64, index=True)
    player_name: Optional[str] = Field(default=None, max_length=100, index=True)
    shard_id: Optional[str] = Field(default=None, max_length=50)

    dbnos: Optional[int] = Field(default=None)
    assists: Optional[int] = Field(default=None)
    boosts: Optional[int] = Field(default=None)
    damage_dealt: Optional[float] = Field(default=None)
    death_type: Optional[str] = Field(default=None, max_length=20, description="alive, byplayer, suicide, ...")
    headshot_kills: Optional[int] = Field(default=None)
    heals: Optional[int] = Field(default=None)
    kill_place: Optional[int] = Field(default=None)
    kill_streaks: Optional[int] = Field(default=None)
    kills: Optional[int] = Field(default=None)
    longest_kill: Optional[float] = Field(default=None)
    revives: Optional[int] = Field(default=None)
    ride_distance: Optional[float] = Field(default=None)
    road_kills: Optional[int] = Field(default=None)
    swim_distance: Optional[float] = Field(default=None)
    team_kills: Optional[int] = Field(default=None)
    time_survived: Optional[float] = Field(default=None)
    vehicle_destroys: Optional[int] = Field(default=None)
    walk_distance: Optional[float] = Field(default=None)
    weapons_acquired: Optional[int] = Field(default=None)
    win_place: Optional[int] = Field(default=None)

    raw_stats: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    match: Optional[Match] = Relationship(back_populates="participants")


class MatchRosterParticipant(SQLModel, table=True):
    """Accumulating roster/participant membership history.

    Pairs are inserted but never removed, unlike MatchParticipant.roster_id
    which always points at the latest roster.
    """

    __tablename__ = "match_roster_participants"

    roster_id: str = Field(
        sa_column=Column(
            String(64), ForeignKey("match_rosters.roster_id", ondelete="CASCADE"), primary_key=True
        )
    )
    participant_id: str = Field(
        sa_column=Column(
            String(64), ForeignKey("match_participants.participant_id", ondelete="CASCADE"), primary_key=True
        )
    )


class TournamentMatch(SQLModel, table=True):
    """Links a tournament/scrim to a match id; created_at keeps encounter order.

    No foreign key to matches: links may point at matches not yet ingested.
    """

    __tablename__ = "tournament_matches"

    tournament_id: str = Field(primary_key=True, max_length=64)
    match_id: str = Field(primary_key=True, max_length=64)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
