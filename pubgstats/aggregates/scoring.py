"""Scoring rules shared by team and player aggregates."""

from typing import Optional

# Final rank -> placement bonus. Ranks 9 and below score nothing.
PLACEMENT_POINTS: dict[int, int] = {
    1: 10,
    2: 6,
    3: 5,
    4: 4,
    5: 3,
    6: 2,
    7: 1,
    8: 1,
}

DEATH_ALIVE = "alive"
DEATH_KILLED = "killed"
DEATH_SUICIDE = "suicide"
DEATH_UNKNOWN = "unknown"
DEATH_CANNOT_DETERMINE = "cannot determine"

# deathType as reported by the API -> classification bucket
DEATH_TYPE_BUCKETS: dict[str, str] = {
    "alive": DEATH_ALIVE,
    "byplayer": DEATH_KILLED,
    "suicide": DEATH_SUICIDE,
}


def placement_points(rank: Optional[int]) -> int:
    """Placement bonus for a final rank; missing or invalid ranks score 0."""
    if not rank or rank < 1:
        return 0
    return PLACEMENT_POINTS.get(int(rank), 0)


def total_points(kills: int, rank: Optional[int]) -> int:
    return (kills or 0) + placement_points(rank)


def classify_death_type(death_type: Optional[str]) -> str:
    """Bucket one observed deathType; anything unrecognised is DEATH_UNKNOWN."""
    return DEATH_TYPE_BUCKETS.get(death_type or "", DEATH_UNKNOWN)


def resolve_death_reason(counts: dict[str, int]) -> str:
    """
    Collapse per-match death observations into one label.

    A label is reported only when it is the single bucket ever observed;
    any mixture, or any unknown observation, is "cannot determine".
    """
    if counts.get(DEATH_UNKNOWN, 0):
        return DEATH_CANNOT_DETERMINE
    observed = [
        bucket
        for bucket in (DEATH_ALIVE, DEATH_KILLED, DEATH_SUICIDE)
        if counts.get(bucket, 0) > 0
    ]
    if len(observed) == 1:
        return observed[0]
    return DEATH_CANNOT_DETERMINE


def safe_div(numerator: float, denominator: float) -> float:
    """Division that yields 0 for a zero denominator."""
    return numerator / denominator if denominator else 0.0
