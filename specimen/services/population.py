"""
Population sources.

The rating and leaderboard services only read the population through this
protocol, so they can run against the database or an in-memory fixture.
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Protocol

from specimen.data_models.leaderboard import LeaderboardQuery
from specimen.data_models.ratings import (
    MetricDefinition, MetricObservation, PopulationSnapshot, UserProfile
)
from specimen.database.database import Database
from specimen.utils.exceptions import PopulationFetchError
from specimen.utils.logger import setup_logger
from specimen.utils.ranking import RankingUtility

logger = setup_logger(__name__)


class PopulationSource(Protocol):
    """Read-only access to observations, metric definitions and user profiles."""

    async def fetch_snapshot(self, rolling_days: Optional[int] = None) -> PopulationSnapshot:
        ...

    async def fetch_candidates(self, query: LeaderboardQuery, today: date) -> List[UserProfile]:
        ...

    async def fetch_metric(self, metric_id: int) -> Optional[MetricDefinition]:
        ...

    async def fetch_profile(self, user_id: int) -> Optional[UserProfile]:
        ...

    async def fetch_display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        ...


class SqlPopulationSource:
    """Population source backed by the SQLAlchemy storage adapter."""

    def __init__(self, database: Database):
        self.database = database

    async def fetch_snapshot(self, rolling_days: Optional[int] = None) -> PopulationSnapshot:
        metrics = await self.database.get_metric_definitions()
        observations = await self.database.get_counted_observations(rolling_days=rolling_days)
        return PopulationSnapshot(metrics=metrics, observations=observations)

    async def fetch_candidates(self, query: LeaderboardQuery, today: date) -> List[UserProfile]:
        # SQL narrows to a superset; the shared predicate has the final say
        profiles = await self.database.get_user_profiles(query.filters, today)
        return [p for p in profiles if RankingUtility.matches_query(p, query, today)]

    async def fetch_metric(self, metric_id: int) -> Optional[MetricDefinition]:
        return await self.database.get_metric_definition(metric_id)

    async def fetch_profile(self, user_id: int) -> Optional[UserProfile]:
        return await self.database.get_user_profile(user_id)

    async def fetch_display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        return await self.database.get_display_names(user_ids)


class InMemoryPopulationSource:
    """Population source over plain lists, used for fixtures and offline runs."""

    def __init__(
        self,
        metrics: Iterable[MetricDefinition],
        observations: Iterable[MetricObservation],
        profiles: Iterable[UserProfile]
    ):
        self.metrics = list(metrics)
        self.observations = list(observations)
        self.profiles = {profile.id: profile for profile in profiles}

    async def fetch_snapshot(self, rolling_days: Optional[int] = None) -> PopulationSnapshot:
        observations = self.observations
        if rolling_days:
            cutoff = datetime.now() - timedelta(days=rolling_days)
            observations = [
                obs for obs in observations
                if obs.recorded_at is None or obs.recorded_at >= cutoff
            ]
        return PopulationSnapshot(metrics=list(self.metrics), observations=list(observations))

    async def fetch_candidates(self, query: LeaderboardQuery, today: date) -> List[UserProfile]:
        return [p for p in self.profiles.values() if RankingUtility.matches_query(p, query, today)]

    async def fetch_metric(self, metric_id: int) -> Optional[MetricDefinition]:
        return next((m for m in self.metrics if m.id == metric_id), None)

    async def fetch_profile(self, user_id: int) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def fetch_display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        return {
            user_id: self.profiles[user_id].display_name
            for user_id in user_ids if user_id in self.profiles
        }


async def guarded_fetch(awaitable: Awaitable, operation: str, context: Dict[str, Any], timeout: float):
    """
    Await a population fetch under a timeout.

    Timeouts and storage failures are logged with the request context and
    re-raised as PopulationFetchError. A PopulationFetchError from a nested
    guarded fetch passes through as is. Cancellation propagates unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except PopulationFetchError:
        raise
    except asyncio.TimeoutError as e:
        logger.error(f"Population fetch timed out after {timeout}s during {operation} ({context})")
        raise PopulationFetchError(operation, "timed out") from e
    except Exception as e:
        logger.error(f"Population fetch failed during {operation} ({context}): {e}", exc_info=True)
        raise PopulationFetchError(operation, str(e)) from e
