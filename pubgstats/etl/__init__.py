"""ETL module for match documents: fetch, resolve, normalize."""

from pubgstats.etl.base import MatchDataProvider, clean_match_ids
from pubgstats.etl.normalizer import MatchNormalizer
from pubgstats.etl.pubg_api import PUBGAPIProvider
from pubgstats.etl.resolver import LiveScope, MatchIdResolver

__all__ = [
    "MatchDataProvider",
    "clean_match_ids",
    "MatchNormalizer",
    "PUBGAPIProvider",
    "LiveScope",
    "MatchIdResolver",
]
