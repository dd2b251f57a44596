"""
Tier and band classification.

Rating tiers come from a fixed ascending threshold table. Percentile bands and
per-metric breakpoint bands are display labels that sit alongside them.
"""

from bisect import bisect_right
from typing import Mapping, Optional

from specimen.constants import TierConstants

_THRESHOLDS = [threshold for threshold, _ in TierConstants.TIER_THRESHOLDS]
_TIER_NAMES = [name for _, name in TierConstants.TIER_THRESHOLDS]

if any(a >= b for a, b in zip(_THRESHOLDS, _THRESHOLDS[1:])):
    raise ValueError("TIER_THRESHOLDS must be strictly ascending")


class TierClassifier:
    """Maps ratings to tiers and values to display bands."""
    
    LOWEST_TIER = _TIER_NAMES[0]
    HIGHEST_TIER = _TIER_NAMES[-1]
    
    @staticmethod
    def tier_from_rating(rating: float) -> str:
        """Return the highest tier whose threshold is <= rating (inclusive lower bound)."""
        index = bisect_right(_THRESHOLDS, rating) - 1
        if index < 0:
            return TierClassifier.LOWEST_TIER
        return _TIER_NAMES[index]
    
    @staticmethod
    def percentile_band(percentile: float) -> str:
        """Band for a 0-100 percentile (diamond, platinum, gold, silver, bronze, unranked)."""
        for minimum, band in TierConstants.PERCENTILE_BANDS:
            if percentile >= minimum:
                return band
        return TierConstants.UNRANKED_BAND
    
    @staticmethod
    def breakpoint_band(
        value: float,
        breakpoints: Optional[Mapping[str, float]],
        higher_is_better: bool = True
    ) -> Optional[str]:
        """
        Band for a raw value against a metric's breakpoint table.
        
        Args:
            value: Raw metric value
            breakpoints: Band name -> threshold value, or None
            higher_is_better: Direction of the metric
            
        Returns:
            Best qualifying band, "unranked" if none qualifies, or None when
            the metric defines no breakpoints
        """
        if not breakpoints:
            return None
        for band in TierConstants.BREAKPOINT_BANDS:
            threshold = breakpoints.get(band)
            if threshold is None:
                continue
            if higher_is_better and value >= threshold:
                return band
            if not higher_is_better and value <= threshold:
                return band
        return TierConstants.UNRANKED_BAND
