"""
Rating data models.

Immutable value objects exchanged between the population source, the
percentile/rating layers and the rating cache.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class MetricObservation:
    """One recorded value for one metric by one user."""
    user_id: int
    metric_id: int
    value: float
    included_in_ranking: bool = True
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class MetricDefinition:
    """A rankable metric and the class it contributes to."""
    id: int
    name: str
    class_id: Optional[int]
    higher_is_better: bool = True
    unit: Optional[str] = None
    rating_breakpoints: Optional[Mapping[str, float]] = None


@dataclass(frozen=True)
class UserProfile:
    """Leaderboard-relevant view of a user record."""
    id: int
    display_name: Optional[str]
    date_of_birth: Optional[date]
    gender: Optional[str]
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    primary_class_id: Optional[int] = None
    primary_class_name: Optional[str] = None
    gym_id: Optional[int] = None
    gym_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    @property
    def is_onboarded(self) -> bool:
        return bool(self.display_name) and self.date_of_birth is not None and bool(self.gender)


@dataclass(frozen=True)
class PercentileResult:
    """Percentile of one value against a population."""
    percentile: float  # 0-100
    rank: int  # count of population members worse than or equal to value
    total_count: int
    value: float


@dataclass(frozen=True)
class PopulationSnapshot:
    """Metric definitions plus every counted observation at one point in time."""
    metrics: List[MetricDefinition]
    observations: List[MetricObservation]

    def counted(self) -> List[MetricObservation]:
        return [obs for obs in self.observations if obs.included_in_ranking]


@dataclass(frozen=True)
class RatingBundle:
    """A user's full computed rating state."""
    user_id: int
    overall_rating: int
    tier: str
    class_ratings: Dict[int, int]
    metric_percentiles: Dict[int, float]
    completed_metrics: int = 0
    metric_bands: Dict[int, str] = field(default_factory=dict)
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation (string keys, ISO timestamp)."""
        return {
            'user_id': self.user_id,
            'overall_rating': self.overall_rating,
            'tier': self.tier,
            'class_ratings': {str(k): v for k, v in self.class_ratings.items()},
            'metric_percentiles': {str(k): v for k, v in self.metric_percentiles.items()},
            'completed_metrics': self.completed_metrics,
            'metric_bands': {str(k): v for k, v in self.metric_bands.items()},
            'computed_at': self.computed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RatingBundle":
        return cls(
            user_id=data['user_id'],
            overall_rating=int(data['overall_rating']),
            tier=data['tier'],
            class_ratings={int(k): int(v) for k, v in data.get('class_ratings', {}).items()},
            metric_percentiles={int(k): float(v) for k, v in data.get('metric_percentiles', {}).items()},
            completed_metrics=int(data.get('completed_metrics', 0)),
            metric_bands={int(k): v for k, v in data.get('metric_bands', {}).items()},
            computed_at=datetime.fromisoformat(data['computed_at']),
        )
