"""
Leaderboard data models.

Provides the validated query type (facet tagged union plus secondary filters)
and the immutable page/entry objects returned by the leaderboard service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from specimen.constants import PaginationConstants


class FacetKind(Enum):
    OVERALL = "overall"
    CLASS = "class"
    GYM = "gym"
    STATE = "state"
    CITY = "city"
    AGE = "age"


@dataclass(frozen=True)
class OverallFacet:
    kind: FacetKind = field(default=FacetKind.OVERALL, init=False)


@dataclass(frozen=True)
class ClassFacet:
    class_id: int
    kind: FacetKind = field(default=FacetKind.CLASS, init=False)


@dataclass(frozen=True)
class GymFacet:
    gym_id: int
    kind: FacetKind = field(default=FacetKind.GYM, init=False)


@dataclass(frozen=True)
class StateFacet:
    state: str
    kind: FacetKind = field(default=FacetKind.STATE, init=False)


@dataclass(frozen=True)
class CityFacet:
    city: str
    kind: FacetKind = field(default=FacetKind.CITY, init=False)


@dataclass(frozen=True)
class AgeFacet:
    age: Optional[int] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    kind: FacetKind = field(default=FacetKind.AGE, init=False)


@dataclass(frozen=True)
class UnmatchedFacet:
    """Unknown facet name, or a facet missing its required value."""
    requested: str
    kind: Optional[FacetKind] = None


Facet = Union[OverallFacet, ClassFacet, GymFacet, StateFacet, CityFacet, AgeFacet, UnmatchedFacet]


@dataclass(frozen=True)
class CandidateFilter:
    """Secondary filters applied on top of the onboarding requirement."""
    class_id: Optional[int] = None
    gym_id: Optional[int] = None
    state: Optional[str] = None
    city: Optional[str] = None
    age: Optional[int] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    search_name: Optional[str] = None


def _parse_int(raw: Any, minimum: Optional[int] = None) -> Optional[int]:
    """Lenient integer parsing: malformed or out-of-range input is ignored."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if minimum is not None and value < minimum:
        return None
    return value


def _parse_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


@dataclass(frozen=True)
class LeaderboardQuery:
    """A leaderboard request validated once at the request boundary."""
    facet: Facet = field(default_factory=OverallFacet)
    filters: CandidateFilter = field(default_factory=CandidateFilter)
    limit: int = PaginationConstants.DEFAULT_PAGE_SIZE
    offset: int = 0
    jump_to_rank: Optional[int] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any], default_limit: int = None) -> "LeaderboardQuery":
        """
        Build a query from raw request parameters.

        Never raises: non-numeric values are dropped, the limit is clamped
        into [1, MAX_PAGE_SIZE] and a non-positive jump target is ignored.

        Args:
            params: Raw parameters using the HTTP names (by, classId, ...)
            default_limit: Page size used when no valid limit is supplied

        Returns:
            Validated LeaderboardQuery
        """
        if default_limit is None:
            default_limit = PaginationConstants.DEFAULT_PAGE_SIZE

        class_id = _parse_int(params.get('classId'), minimum=0)
        gym_id = _parse_int(params.get('gymId'), minimum=0)
        state = _parse_text(params.get('state'))
        city = _parse_text(params.get('city'))
        age = _parse_int(params.get('age'), minimum=0)
        age_min = _parse_int(params.get('ageMin'), minimum=0)
        age_max = _parse_int(params.get('ageMax'), minimum=0)

        by = (_parse_text(params.get('by')) or FacetKind.OVERALL.value).lower()
        facet = _build_facet(by, class_id, gym_id, state, city, age, age_min, age_max)

        raw_limit = _parse_int(params.get('limit'))
        if raw_limit is None:
            limit = default_limit
        else:
            limit = raw_limit
        limit = max(1, min(limit, PaginationConstants.MAX_PAGE_SIZE))

        return cls(
            facet=facet,
            filters=CandidateFilter(
                class_id=class_id,
                gym_id=gym_id,
                state=state,
                city=city,
                age=age,
                age_min=age_min,
                age_max=age_max,
                search_name=_parse_text(params.get('searchName')),
            ),
            limit=limit,
            offset=_parse_int(params.get('cursor'), minimum=0) or 0,
            jump_to_rank=_parse_int(params.get('jumpToRank'), minimum=1),
        )

    @property
    def facet_name(self) -> str:
        if isinstance(self.facet, UnmatchedFacet):
            return self.facet.requested
        return self.facet.kind.value

    def facets_echo(self) -> Dict[str, Any]:
        """Resolved facet values, as echoed back to the caller."""
        return {
            'by': self.facet_name,
            'classId': self.filters.class_id,
            'gymId': self.filters.gym_id,
            'state': self.filters.state,
            'city': self.filters.city,
            'age': self.filters.age,
            'ageMin': self.filters.age_min,
            'ageMax': self.filters.age_max,
            'searchName': self.filters.search_name,
        }


def _build_facet(by, class_id, gym_id, state, city, age, age_min, age_max) -> Facet:
    if by == FacetKind.OVERALL.value:
        return OverallFacet()
    if by == FacetKind.CLASS.value:
        return ClassFacet(class_id) if class_id is not None else UnmatchedFacet(by, FacetKind.CLASS)
    if by == FacetKind.GYM.value:
        return GymFacet(gym_id) if gym_id is not None else UnmatchedFacet(by, FacetKind.GYM)
    if by == FacetKind.STATE.value:
        return StateFacet(state) if state else UnmatchedFacet(by, FacetKind.STATE)
    if by == FacetKind.CITY.value:
        return CityFacet(city) if city else UnmatchedFacet(by, FacetKind.CITY)
    if by == FacetKind.AGE.value:
        if age is None and age_min is None and age_max is None:
            return UnmatchedFacet(by, FacetKind.AGE)
        return AgeFacet(age, age_min, age_max)
    return UnmatchedFacet(by)


@dataclass(frozen=True)
class LeaderboardEntry:
    """Single leaderboard row."""
    rank: int
    user_id: int
    display_name: str
    rating: int
    tier: str
    completed_metrics: int
    age: int
    bmi: float
    bmi_deviation: float
    primary_class: str
    gym: str
    city: str
    state: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'userId': self.user_id,
            'displayName': self.display_name,
            'rating': self.rating,
            'tier': self.tier,
            'totalMetrics': self.completed_metrics,
            'age': self.age,
            'bmi': round(self.bmi, 2),
            'bmiDeviation': round(self.bmi_deviation, 2),
            'primaryClass': self.primary_class,
            'gym': self.gym,
            'city': self.city,
            'state': self.state,
        }


@dataclass(frozen=True)
class Pagination:
    total: int
    limit: int
    offset: int
    has_more: bool
    next_cursor: Optional[str]
    current_page: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'limit': self.limit,
            'offset': self.offset,
            'hasMore': self.has_more,
            'nextCursor': self.next_cursor,
            'currentPage': self.current_page,
            'totalPages': self.total_pages,
        }


@dataclass(frozen=True)
class JumpInfo:
    requested_rank: int
    actual_rank: int
    centered: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'requestedRank': self.requested_rank,
            'actualRank': self.actual_rank,
            'centered': self.centered,
        }


@dataclass(frozen=True)
class LeaderboardPage:
    """Paginated leaderboard data."""
    entries: List[LeaderboardEntry]
    pagination: Pagination
    facets: Dict[str, Any]
    jump_info: Optional[JumpInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'entries': [entry.to_dict() for entry in self.entries],
            'pagination': self.pagination.to_dict(),
            'facets': self.facets,
            'jumpInfo': self.jump_info.to_dict() if self.jump_info else None,
        }


@dataclass(frozen=True)
class MetricLeaderboardEntry:
    """Best counted observation of one user for one metric."""
    rank: int
    user_id: int
    display_name: str
    value: float
    percentile: float
    band: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'userId': self.user_id,
            'displayName': self.display_name,
            'value': self.value,
            'percentile': round(self.percentile, 2),
            'band': self.band,
        }
