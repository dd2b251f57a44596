"""
Percentile calculation against a population of raw metric observations.

Binary search keeps each lookup at O(log n) after the sort. Values that fall
strictly between two population members are linearly interpolated so sparse,
continuous metrics do not plateau.
"""

from bisect import bisect_left, bisect_right
from typing import Dict, Iterable, List, Sequence, Tuple

from specimen.data_models.ratings import MetricObservation, PercentileResult


def calculate_percentile(
    values: Sequence[float],
    target: float,
    higher_is_better: bool = True
) -> PercentileResult:
    """
    Calculate the percentile of a value within a population.

    Args:
        values: Population values, in any order
        target: Value to find the percentile for
        higher_is_better: Whether higher values are better (False for race times)

    Returns:
        PercentileResult with percentile (0-100), rank (count of members worse
        than or equal to target), population size and the input value
    """
    total = len(values)
    if total == 0:
        return PercentileResult(percentile=0.0, rank=0, total_count=0, value=target)

    ordered = sorted(values)

    if higher_is_better:
        # Members <= target are worse or equal
        count = bisect_right(ordered, target)
        exact_match = count > 0 and ordered[count - 1] == target
        between = 0 < count < total
        if between and not exact_match:
            lower, upper = ordered[count - 1], ordered[count]
            lower_pct = count / total * 100
            upper_pct = bisect_right(ordered, upper) / total * 100
        else:
            percentile = count / total * 100
    else:
        # Members >= target are worse or equal
        first = bisect_left(ordered, target)
        count = total - first
        exact_match = first < total and ordered[first] == target
        between = 0 < first < total
        if between and not exact_match:
            lower, upper = ordered[first - 1], ordered[first]
            lower_pct = (total - bisect_left(ordered, lower)) / total * 100
            upper_pct = count / total * 100
        else:
            percentile = count / total * 100

    if between and not exact_match:
        factor = (target - lower) / (upper - lower)
        percentile = lower_pct + (upper_pct - lower_pct) * factor

    return PercentileResult(
        percentile=max(0.0, min(100.0, percentile)),
        rank=count,
        total_count=total,
        value=target,
    )


def best_observations(
    observations: Iterable[MetricObservation],
    directions: Dict[int, bool]
) -> Dict[Tuple[int, int], MetricObservation]:
    """
    Group observations by (user, metric) and keep the best one of each group.

    Idempotent: feeding already-reduced observations returns the same set.

    Args:
        observations: Counted observations
        directions: metric_id -> higher_is_better; unknown metrics default to True

    Returns:
        Dictionary mapping (user_id, metric_id) to the best observation
    """
    best: Dict[Tuple[int, int], MetricObservation] = {}
    for obs in observations:
        key = (obs.user_id, obs.metric_id)
        current = best.get(key)
        if current is None:
            best[key] = obs
            continue
        if directions.get(obs.metric_id, True):
            if obs.value > current.value:
                best[key] = obs
        elif obs.value < current.value:
            best[key] = obs
    return best


def metric_populations(observations: Iterable[MetricObservation]) -> Dict[int, List[float]]:
    """Group counted observation values by metric id."""
    populations: Dict[int, List[float]] = {}
    for obs in observations:
        if obs.included_in_ranking:
            populations.setdefault(obs.metric_id, []).append(obs.value)
    return populations
