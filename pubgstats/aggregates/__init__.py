"""
Tournament aggregates module.

Provides leaderboards, team stats and player stats computed from match documents.
"""

from pubgstats.aggregates.scoring import (
    PLACEMENT_POINTS,
    placement_points,
    resolve_death_reason,
)
from pubgstats.aggregates.service import (
    AggregationParams,
    AggregationResult,
    AggregationService,
    PlayerStat,
    TeamStat,
)

__all__ = [
    "PLACEMENT_POINTS",
    "placement_points",
    "resolve_death_reason",
    "AggregationParams",
    "AggregationResult",
    "AggregationService",
    "PlayerStat",
    "TeamStat",
]
