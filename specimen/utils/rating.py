from typing import Iterable, Mapping

from specimen.constants import RatingConstants

class RatingCalculator:
    """Converts percentiles into class and overall ratings"""
    
    @staticmethod
    def percentile_to_rating(percentile: float) -> int:
        """
        Convert a percentile to a rating on the convex curve
        
        Args:
            percentile: Percentile as a fraction (0.0 to 1.0)
            
        Returns:
            Rating between FLOOR_RATING and CEILING_RATING
        """
        if percentile <= 0:
            return RatingConstants.FLOOR_RATING
        percentile = min(percentile, 1.0)
        span = RatingConstants.CEILING_RATING - RatingConstants.FLOOR_RATING
        return round(RatingConstants.FLOOR_RATING + span * percentile ** RatingConstants.CURVE_EXPONENT)
    
    @staticmethod
    def class_rating(percentiles: Iterable[float]) -> int:
        """
        Calculate a class rating from the user's percentiles in that class
        
        Args:
            percentiles: Per-metric percentiles as fractions (0.0 to 1.0)
            
        Returns:
            Rating of the mean percentile, or FLOOR_RATING with no percentiles
        """
        percentiles = list(percentiles)
        if not percentiles:
            return RatingConstants.FLOOR_RATING
        return RatingCalculator.percentile_to_rating(sum(percentiles) / len(percentiles))
    
    @staticmethod
    def overall_rating(class_ratings: Mapping[int, int]) -> int:
        """
        Calculate the overall rating from class ratings
        
        Only classes above the floor (classes the user actually took part in)
        contribute to the mean.
        
        Args:
            class_ratings: Mapping of class id to class rating
            
        Returns:
            Overall rating, or FLOOR_RATING when no class qualifies
        """
        ratings = [r for r in class_ratings.values() if r > RatingConstants.FLOOR_RATING]
        if not ratings:
            return RatingConstants.FLOOR_RATING
        return round(sum(ratings) / len(ratings))

