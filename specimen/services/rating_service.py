"""
Rating service: builds rating bundles from a population snapshot, cache-first.
"""

from typing import Any, Dict, Iterable, List, Optional

from specimen.config import Config
from specimen.data_models.ratings import (
    MetricDefinition, MetricObservation, PopulationSnapshot, RatingBundle
)
from specimen.services.population import PopulationSource, guarded_fetch
from specimen.services.rating_cache import RatingCache
from specimen.utils.exceptions import CacheUnavailableError, UserNotFoundError
from specimen.utils.logger import setup_logger
from specimen.utils.percentile import best_observations, calculate_percentile, metric_populations
from specimen.utils.rating import RatingCalculator
from specimen.utils.tiers import TierClassifier

logger = setup_logger(__name__)


class SnapshotIndex:
    """Per-snapshot lookups shared by every bundle computed from it."""

    def __init__(self, snapshot: PopulationSnapshot):
        self.metrics: Dict[int, MetricDefinition] = {m.id: m for m in snapshot.metrics}
        directions = {m.id: m.higher_is_better for m in snapshot.metrics}
        counted = [obs for obs in snapshot.counted() if obs.metric_id in self.metrics]

        self.populations = {
            metric_id: sorted(values)
            for metric_id, values in metric_populations(counted).items()
        }

        self.best_by_user: Dict[int, List[MetricObservation]] = {}
        for (user_id, _), obs in best_observations(counted, directions).items():
            self.best_by_user.setdefault(user_id, []).append(obs)

        self.counted_by_user: Dict[int, int] = {}
        for obs in counted:
            self.counted_by_user[obs.user_id] = self.counted_by_user.get(obs.user_id, 0) + 1

        self.class_metrics: Dict[int, List[int]] = {}
        for metric in snapshot.metrics:
            if metric.class_id is not None:
                self.class_metrics.setdefault(metric.class_id, []).append(metric.id)


class RatingService:
    """Computes and caches per-user rating bundles."""

    def __init__(
        self,
        source: PopulationSource,
        cache: RatingCache,
        rolling_days: Optional[int] = None,
        fetch_timeout: Optional[float] = None
    ):
        self.source = source
        self.cache = cache
        self.rolling_days = rolling_days if rolling_days is not None else Config.get_rolling_days()
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else Config.POPULATION_FETCH_TIMEOUT

    @staticmethod
    def compute_bundle(user_id: int, snapshot, index: Optional[SnapshotIndex] = None) -> RatingBundle:
        """
        Compute a user's bundle from a snapshot without touching the cache.

        For each metric the user's best counted value is ranked against every
        counted observation of that metric. Class ratings average the class's
        percentiles; classes the user has not entered sit at the floor.

        Args:
            user_id: User to rate
            snapshot: PopulationSnapshot to rate against
            index: Prebuilt SnapshotIndex for the same snapshot, when rating many users

        Returns:
            RatingBundle
        """
        index = index or SnapshotIndex(snapshot)

        metric_percentiles: Dict[int, float] = {}
        metric_bands: Dict[int, str] = {}
        for obs in index.best_by_user.get(user_id, []):
            metric = index.metrics[obs.metric_id]
            result = calculate_percentile(
                index.populations[obs.metric_id], obs.value, metric.higher_is_better
            )
            metric_percentiles[obs.metric_id] = result.percentile
            metric_bands[obs.metric_id] = TierClassifier.percentile_band(result.percentile)

        class_ratings = {
            class_id: RatingCalculator.class_rating(
                metric_percentiles[metric_id] / 100
                for metric_id in metric_ids if metric_id in metric_percentiles
            )
            for class_id, metric_ids in index.class_metrics.items()
        }
        overall = RatingCalculator.overall_rating(class_ratings)

        return RatingBundle(
            user_id=user_id,
            overall_rating=overall,
            tier=TierClassifier.tier_from_rating(overall),
            class_ratings=class_ratings,
            metric_percentiles=metric_percentiles,
            completed_metrics=index.counted_by_user.get(user_id, 0),
            metric_bands=metric_bands,
        )

    async def _fetch_snapshot(self, operation: str, context: Dict[str, Any]) -> PopulationSnapshot:
        return await guarded_fetch(
            self.source.fetch_snapshot(self.rolling_days), operation, context, self.fetch_timeout
        )

    async def _cache_get(self, user_id: int) -> Optional[RatingBundle]:
        try:
            return await self.cache.get(user_id)
        except CacheUnavailableError as e:
            logger.warning(f"Rating cache read failed for user {user_id}, computing directly: {e}")
            return None

    async def _cache_set(self, user_id: int, bundle: RatingBundle):
        try:
            await self.cache.set(user_id, bundle)
        except CacheUnavailableError as e:
            logger.warning(f"Rating cache write failed for user {user_id}: {e}")

    async def get_bundle(self, user_id: int, snapshot: Optional[PopulationSnapshot] = None) -> RatingBundle:
        """Return the cached bundle or compute and cache a fresh one."""
        cached = await self._cache_get(user_id)
        if cached is not None:
            return cached

        if snapshot is None:
            snapshot = await self._fetch_snapshot("get_bundle", {'user_id': user_id})
        bundle = self.compute_bundle(user_id, snapshot)
        await self._cache_set(user_id, bundle)
        return bundle

    async def get_bundles(
        self,
        user_ids: Iterable[int],
        snapshot: Optional[PopulationSnapshot] = None
    ) -> Dict[int, RatingBundle]:
        """
        Bundles for many users; all misses are computed from one snapshot.

        The snapshot is only fetched when at least one user misses the cache.
        """
        bundles: Dict[int, RatingBundle] = {}
        misses = []
        for user_id in user_ids:
            cached = await self._cache_get(user_id)
            if cached is not None:
                bundles[user_id] = cached
            else:
                misses.append(user_id)

        if misses:
            if snapshot is None:
                snapshot = await self._fetch_snapshot("get_bundles", {'misses': len(misses)})
            index = SnapshotIndex(snapshot)
            for user_id in misses:
                bundle = self.compute_bundle(user_id, snapshot, index)
                await self._cache_set(user_id, bundle)
                bundles[user_id] = bundle

        logger.debug(f"Resolved {len(bundles)} rating bundles ({len(misses)} computed)")
        return bundles

    async def get_user_rating(self, user_id: int) -> RatingBundle:
        """Bundle for a known user; raises UserNotFoundError otherwise."""
        profile = await guarded_fetch(
            self.source.fetch_profile(user_id), "get_user_rating", {'user_id': user_id}, self.fetch_timeout
        )
        if profile is None:
            raise UserNotFoundError(user_id)
        return await self.get_bundle(user_id)

    async def invalidate_user(self, user_id: int):
        """Evict one user's bundle, e.g. after their entries change."""
        await self.cache.invalidate(user_id)

    async def invalidate_all(self):
        await self.cache.clear()
