"""
Shared ranking utilities for leaderboard ordering and pagination.

Everything here is pure: candidates in, ordered/sliced candidates out. The
leaderboard service and the population sources share the filter predicate so
in-memory and SQL-backed candidate sets agree.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

from specimen.constants import TiebreakConstants
from specimen.data_models.leaderboard import (
    CandidateFilter, ClassFacet, LeaderboardQuery, UnmatchedFacet
)
from specimen.data_models.ratings import UserProfile


@dataclass(frozen=True)
class RankingCandidate:
    """A filtered user with its primary rating and derived tiebreak attributes."""
    profile: UserProfile
    rating: int
    tier: str
    completed_metrics: int
    age: int
    bmi: float
    bmi_deviation: float


class RankingUtility:
    """Shared ranking logic for consistent leaderboard ordering."""

    @staticmethod
    def calculate_age(date_of_birth: Optional[date], today: date) -> int:
        """Age in whole years at `today`; 0 when the birth date is unknown."""
        if date_of_birth is None:
            return 0
        age = today.year - date_of_birth.year
        if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
            age -= 1
        return age

    @staticmethod
    def calculate_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> float:
        """BMI (kg / m^2); 0 when height or weight is missing."""
        if not height_cm or not weight_kg:
            return 0.0
        height_m = height_cm / 100
        return weight_kg / (height_m * height_m)

    @staticmethod
    def bmi_deviation(bmi: float) -> float:
        return abs(bmi - TiebreakConstants.IDEAL_BMI)

    @staticmethod
    def years_before(today: date, years: int) -> date:
        """Same calendar day `years` earlier; Feb 29 falls back to Feb 28."""
        try:
            return today.replace(year=today.year - years)
        except ValueError:
            return today.replace(year=today.year - years, day=28)

    @staticmethod
    def age_bounds(filters: CandidateFilter) -> Tuple[Optional[int], Optional[int]]:
        """
        Combine exact age and age range into one inclusive (min, max) pair.

        Returns:
            (minimum_age, maximum_age); either side may be None
        """
        age_min, age_max = filters.age_min, filters.age_max
        if filters.age is not None:
            age_min = filters.age if age_min is None else max(age_min, filters.age)
            age_max = filters.age if age_max is None else min(age_max, filters.age)
        return age_min, age_max

    @staticmethod
    def birth_date_bounds(
        filters: CandidateFilter,
        today: date
    ) -> Tuple[Optional[date], Optional[date]]:
        """
        Translate age bounds into birth-date bounds for storage queries.

        Returns:
            (born_after_exclusive, born_on_or_before); either side may be None
        """
        age_min, age_max = RankingUtility.age_bounds(filters)
        latest = RankingUtility.years_before(today, age_min) if age_min is not None else None
        earliest = RankingUtility.years_before(today, age_max + 1) if age_max is not None else None
        return earliest, latest

    @staticmethod
    def matches_query(profile: UserProfile, query: LeaderboardQuery, today: date) -> bool:
        """
        Filter predicate: onboarding completeness, facet and secondary filters.

        An unmatched facet matches nobody.
        """
        if isinstance(query.facet, UnmatchedFacet):
            return False
        if not profile.is_onboarded:
            return False

        filters = query.filters
        if filters.class_id is not None and profile.primary_class_id != filters.class_id:
            return False
        if filters.gym_id is not None and profile.gym_id != filters.gym_id:
            return False
        if filters.state and (profile.state or '').casefold() != filters.state.casefold():
            return False
        if filters.city and (profile.city or '').casefold() != filters.city.casefold():
            return False
        if filters.search_name and filters.search_name.casefold() not in profile.display_name.casefold():
            return False

        age_min, age_max = RankingUtility.age_bounds(filters)
        if age_min is not None or age_max is not None:
            age = RankingUtility.calculate_age(profile.date_of_birth, today)
            if age_min is not None and age < age_min:
                return False
            if age_max is not None and age > age_max:
                return False
        return True

    @staticmethod
    def primary_class_id(query: LeaderboardQuery) -> Optional[int]:
        """Class whose rating ranks the board, or None for the overall rating."""
        if isinstance(query.facet, ClassFacet):
            return query.facet.class_id
        return None

    @staticmethod
    def tiebreak_key(candidate: RankingCandidate) -> tuple:
        """
        Sort key implementing the tiebreak chain.

        Rating desc, completed metrics desc, age asc, BMI deviation asc,
        case-insensitive name asc, then user id for duplicate names.
        """
        return (
            -candidate.rating,
            -candidate.completed_metrics,
            candidate.age,
            candidate.bmi_deviation,
            (candidate.profile.display_name or '').casefold(),
            candidate.profile.id,
        )

    @staticmethod
    def sort_candidates(candidates: Sequence[RankingCandidate]) -> List[RankingCandidate]:
        return sorted(candidates, key=RankingUtility.tiebreak_key)

    @staticmethod
    def page_start(limit: int, offset: int = 0, jump_to_rank: Optional[int] = None) -> int:
        """
        First index of the requested page.

        Jump-to-rank centers the target rank in the page unless that would
        start before index 0.
        """
        if jump_to_rank is not None and jump_to_rank > 0:
            return max(0, jump_to_rank - 1 - limit // 2)
        return max(0, offset)

    @staticmethod
    def paginate(
        ordered: Sequence[RankingCandidate],
        limit: int,
        offset: int = 0,
        jump_to_rank: Optional[int] = None
    ) -> Tuple[int, List[Tuple[int, RankingCandidate]]]:
        """
        Slice an ordered candidate list.

        Returns:
            (start_index, [(rank, candidate), ...]) with rank = start + index + 1
        """
        start = RankingUtility.page_start(limit, offset, jump_to_rank)
        page = ordered[start:start + limit]
        return start, [(start + index + 1, candidate) for index, candidate in enumerate(page)]
