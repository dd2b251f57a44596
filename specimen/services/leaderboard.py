"""
Leaderboard service.

Filters candidates, resolves each candidate's rating bundle (cache-first),
orders them by the tiebreak chain and slices the requested page. Every
request ranks the full filtered set; a failed population fetch aborts the
request rather than returning a partial ranking.
"""

import math
from datetime import date
from typing import Any, Awaitable, Dict, List, Optional

from specimen.config import Config
from specimen.constants import PaginationConstants, RatingConstants
from specimen.data_models.leaderboard import (
    JumpInfo, LeaderboardEntry, LeaderboardPage, LeaderboardQuery,
    MetricLeaderboardEntry, Pagination, UnmatchedFacet
)
from specimen.data_models.ratings import UserProfile
from specimen.services.population import PopulationSource, guarded_fetch
from specimen.services.rating_service import RatingService
from specimen.utils.exceptions import MetricNotFoundError
from specimen.utils.logger import setup_logger
from specimen.utils.percentile import best_observations, calculate_percentile
from specimen.utils.ranking import RankingCandidate, RankingUtility
from specimen.utils.tiers import TierClassifier

logger = setup_logger(__name__)


class LeaderboardService:
    """Service for faceted leaderboard queries and per-metric boards."""

    def __init__(
        self,
        source: PopulationSource,
        rating_service: RatingService,
        fetch_timeout: Optional[float] = None
    ):
        self.source = source
        self.rating_service = rating_service
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else Config.POPULATION_FETCH_TIMEOUT

    async def _guarded(self, awaitable: Awaitable, operation: str, context: Dict[str, Any]):
        return await guarded_fetch(awaitable, operation, context, self.fetch_timeout)

    async def _load_ranked_population(self, query: LeaderboardQuery, today: date):
        profiles = await self.source.fetch_candidates(query, today)
        bundles = await self.rating_service.get_bundles([p.id for p in profiles])
        return profiles, bundles

    def _build_candidate(self, profile: UserProfile, bundle, class_id: Optional[int], today: date) -> RankingCandidate:
        if class_id is not None:
            rating = bundle.class_ratings.get(class_id, RatingConstants.FLOOR_RATING)
        else:
            rating = bundle.overall_rating
        bmi = RankingUtility.calculate_bmi(profile.height_cm, profile.weight_kg)
        return RankingCandidate(
            profile=profile,
            rating=rating,
            tier=TierClassifier.tier_from_rating(rating),
            completed_metrics=bundle.completed_metrics,
            age=RankingUtility.calculate_age(profile.date_of_birth, today),
            bmi=bmi,
            bmi_deviation=RankingUtility.bmi_deviation(bmi),
        )

    async def get_page(self, query: LeaderboardQuery, today: Optional[date] = None) -> LeaderboardPage:
        """
        Get one page of a faceted leaderboard.

        Args:
            query: Validated LeaderboardQuery
            today: Reference date for ages; defaults to the current date

        Returns:
            LeaderboardPage with entries, pagination, resolved facets and jump info

        Raises:
            PopulationFetchError: candidates or observations could not be fetched
        """
        today = today or date.today()

        if isinstance(query.facet, UnmatchedFacet):
            logger.debug(f"Unmatched leaderboard facet '{query.facet.requested}', returning empty page")
            profiles, bundles = [], {}
        else:
            profiles, bundles = await self._guarded(
                self._load_ranked_population(query, today),
                "get_page",
                query.facets_echo()
            )

        class_id = RankingUtility.primary_class_id(query)
        candidates = [
            self._build_candidate(profile, bundles[profile.id], class_id, today)
            for profile in profiles
        ]
        ordered = RankingUtility.sort_candidates(candidates)
        start, ranked = RankingUtility.paginate(ordered, query.limit, query.offset, query.jump_to_rank)

        total = len(ordered)
        has_more = start + query.limit < total
        pagination = Pagination(
            total=total,
            limit=query.limit,
            offset=start,
            has_more=has_more,
            next_cursor=str(start + query.limit) if has_more else None,
            current_page=start // query.limit + 1,
            total_pages=math.ceil(total / query.limit),
        )

        jump_info = None
        if query.jump_to_rank is not None:
            jump_info = JumpInfo(requested_rank=query.jump_to_rank, actual_rank=start + 1)

        entries = [
            LeaderboardEntry(
                rank=rank,
                user_id=candidate.profile.id,
                display_name=candidate.profile.display_name,
                rating=candidate.rating,
                tier=candidate.tier,
                completed_metrics=candidate.completed_metrics,
                age=candidate.age,
                bmi=candidate.bmi,
                bmi_deviation=candidate.bmi_deviation,
                primary_class=candidate.profile.primary_class_name,
                gym=candidate.profile.gym_name,
                city=candidate.profile.city,
                state=candidate.profile.state,
            )
            for rank, candidate in ranked
        ]

        logger.debug(f"Leaderboard {query.facet_name}: {total} candidates, page starts at {start}")
        return LeaderboardPage(
            entries=entries,
            pagination=pagination,
            facets=query.facets_echo(),
            jump_info=jump_info,
        )

    async def get_metric_leaderboard(
        self,
        metric_id: int,
        limit: int = PaginationConstants.METRIC_LEADERBOARD_LIMIT
    ) -> List[MetricLeaderboardEntry]:
        """
        Best counted observation per user for one metric, best first.

        Raises:
            MetricNotFoundError: the metric does not exist
            PopulationFetchError: observations could not be fetched
        """
        limit = max(1, min(limit, PaginationConstants.METRIC_LEADERBOARD_LIMIT))
        context = {'metric_id': metric_id}

        metric = await self._guarded(self.source.fetch_metric(metric_id), "get_metric_leaderboard", context)
        if metric is None:
            raise MetricNotFoundError(metric_id)

        snapshot = await self._guarded(
            self.source.fetch_snapshot(self.rating_service.rolling_days),
            "get_metric_leaderboard",
            context
        )
        observations = [obs for obs in snapshot.counted() if obs.metric_id == metric_id]
        population = sorted(obs.value for obs in observations)

        best = list(best_observations(observations, {metric_id: metric.higher_is_better}).values())
        if metric.higher_is_better:
            best.sort(key=lambda obs: (-obs.value, obs.user_id))
        else:
            best.sort(key=lambda obs: (obs.value, obs.user_id))
        best = best[:limit]

        names = await self._guarded(
            self.source.fetch_display_names([obs.user_id for obs in best]),
            "get_metric_leaderboard",
            context
        )

        return [
            MetricLeaderboardEntry(
                rank=index + 1,
                user_id=obs.user_id,
                display_name=names.get(obs.user_id),
                value=obs.value,
                percentile=calculate_percentile(population, obs.value, metric.higher_is_better).percentile,
                band=TierClassifier.breakpoint_band(obs.value, metric.rating_breakpoints, metric.higher_is_better),
            )
            for index, obs in enumerate(best)
        ]
