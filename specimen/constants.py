"""
Service-wide constants for the Specimen rating system.

Rating curve, tier table and pagination bounds are fixed configuration:
they are not editable at runtime.
"""

class RatingConstants:
    """Constants for percentile-to-rating conversion."""
    
    # Rating assigned to a user/class with no qualifying observations
    FLOOR_RATING = 500
    
    # Rating of a user at the 100th percentile of every metric
    CEILING_RATING = 3000
    
    # Convex curve exponent: gains accelerate near the top of the distribution
    CURVE_EXPONENT = 1.5

class TierConstants:
    """Rating tier table, ascending by inclusive lower bound."""
    
    TIER_THRESHOLDS = (
        (0, "Tin"),
        (1000, "Bronze"),
        (1200, "Silver"),
        (1400, "Gold"),
        (1600, "Platinum"),
        (1800, "Diamond"),
        (2000, "Bionic"),
    )
    
    # Percentile display bands, descending by minimum percentile
    PERCENTILE_BANDS = (
        (95, "diamond"),
        (85, "platinum"),
        (70, "gold"),
        (50, "silver"),
        (25, "bronze"),
    )
    
    UNRANKED_BAND = "unranked"
    
    # Band names a metric's breakpoint table may define, best first
    BREAKPOINT_BANDS = ("diamond", "platinum", "gold", "silver", "bronze")

class PaginationConstants:
    """Constants for paginated leaderboards."""
    
    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 100
    
    # Rows returned by the per-metric best-entry leaderboard
    METRIC_LEADERBOARD_LIMIT = 100

class TiebreakConstants:
    """Constants for leaderboard tiebreak attributes."""
    
    # BMI treated as ideal; smaller distance from it wins a tie
    IDEAL_BMI = 22.0

class CacheConstants:
    """Constants for rating bundle caching."""
    
    DEFAULT_CACHE_TTL = 60  # seconds
    DEFAULT_MAX_CACHE_SIZE = 1000
    REDIS_KEY_PREFIX = "specimen:rating:"
