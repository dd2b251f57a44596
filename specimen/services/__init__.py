"""
Services package for the Specimen rating system.

Orchestration over the pure percentile/rating/ranking utilities.
"""

from .rating_cache import RatingCache, InMemoryRatingCache, RedisRatingCache, create_rating_cache
from .rating_service import RatingService
from .leaderboard import LeaderboardService

__all__ = [
    'RatingCache',
    'InMemoryRatingCache',
    'RedisRatingCache',
    'create_rating_cache',
    'RatingService',
    'LeaderboardService',
]
