"""
Tests for rating bundles and faceted leaderboards over an in-memory population
"""

import asyncio

import pytest

from specimen.data_models.leaderboard import LeaderboardQuery
from specimen.services.leaderboard import LeaderboardService
from specimen.services.rating_service import RatingService
from specimen.utils.exceptions import MetricNotFoundError, PopulationFetchError, UserNotFoundError
from specimen.utils.rating import RatingCalculator

from conftest import BENCH, BODYWEIGHT, MILE_RUN, PULL_UPS, SUPER_ATHLETE, TITAN


def ids(page):
    return [entry.user_id for entry in page.entries]


class FailingSource:
    async def fetch_candidates(self, query, today):
        raise RuntimeError("database is locked")

    async def fetch_snapshot(self, rolling_days=None):
        raise RuntimeError("database is locked")

    async def fetch_metric(self, metric_id):
        raise RuntimeError("database is locked")

    async def fetch_profile(self, user_id):
        raise RuntimeError("database is locked")


class SlowSource(FailingSource):
    async def fetch_candidates(self, query, today):
        await asyncio.sleep(10)


class TestRatingBundles:

    async def test_bundle_for_multi_class_user(self, rating_service):
        bundle = await rating_service.get_bundle(1)

        assert bundle.metric_percentiles[BENCH] == pytest.approx(80.0)
        assert bundle.metric_percentiles[PULL_UPS] == pytest.approx(50.0)
        assert bundle.metric_bands == {BENCH: "gold", PULL_UPS: "silver"}
        assert bundle.class_ratings == {TITAN: 2289, BODYWEIGHT: 1384, SUPER_ATHLETE: 500}
        assert bundle.overall_rating == RatingCalculator.overall_rating(bundle.class_ratings)
        assert bundle.tier == "Diamond"
        assert bundle.completed_metrics == 2

    async def test_lower_is_better_metric(self, rating_service):
        bundle = await rating_service.get_bundle(4)
        assert bundle.metric_percentiles == {MILE_RUN: pytest.approx(100.0)}
        assert bundle.overall_rating == 3000
        assert bundle.tier == "Bionic"

    async def test_best_observation_counts(self, rating_service):
        # User 2 logged 185 and 225; only 225 is ranked but both count as entries
        bundle = await rating_service.get_bundle(2)
        assert bundle.metric_percentiles[BENCH] == pytest.approx(60.0)
        assert bundle.completed_metrics == 3

    async def test_excluded_observation_ignored(self, rating_service):
        bundle = await rating_service.get_bundle(5)
        assert BENCH not in bundle.metric_percentiles
        assert bundle.completed_metrics == 1

    async def test_user_without_observations_sits_at_floor(self, rating_service):
        bundle = await rating_service.get_bundle(999)
        assert bundle.overall_rating == 500
        assert bundle.tier == "Tin"
        assert bundle.metric_percentiles == {}
        assert bundle.completed_metrics == 0

    async def test_unknown_user_rating(self, rating_service):
        with pytest.raises(UserNotFoundError):
            await rating_service.get_user_rating(999)

    async def test_bundles_are_cached(self, rating_service, rating_cache):
        await rating_service.get_bundles([1, 2, 3])
        assert len(rating_cache) == 3
        await rating_service.invalidate_all()
        assert len(rating_cache) == 0


class TestLeaderboardPages:

    async def test_overall_order_excludes_unonboarded(self, leaderboard_service, today):
        page = await leaderboard_service.get_page(LeaderboardQuery(), today)

        assert ids(page) == [4, 3, 5, 1, 2]
        assert [entry.rank for entry in page.entries] == [1, 2, 3, 4, 5]
        ratings = [entry.rating for entry in page.entries]
        assert ratings == sorted(ratings, reverse=True)
        assert page.pagination.total == 5
        assert page.jump_info is None

    async def test_entry_fields(self, leaderboard_service, today):
        page = await leaderboard_service.get_page(LeaderboardQuery(), today)
        alice = next(e for e in page.entries if e.user_id == 1)

        assert alice.age == 30
        assert alice.completed_metrics == 2
        assert alice.gym == "Iron Temple"
        assert alice.bmi == pytest.approx(60 / 1.65 ** 2)
        assert alice.bmi_deviation == pytest.approx(abs(60 / 1.65 ** 2 - 22))

        eve = next(e for e in page.entries if e.user_id == 5)
        assert eve.bmi == 0
        assert eve.age == 26

    async def test_class_facet_ranks_by_class_rating(self, leaderboard_service, today):
        query = LeaderboardQuery.from_params({'by': 'class', 'classId': str(TITAN)})
        page = await leaderboard_service.get_page(query, today)

        assert ids(page) == [1, 2]
        assert [entry.rating for entry in page.entries] == [2289, 1662]
        assert page.entries[0].tier == "Bionic"

    async def test_gym_state_city_facets(self, leaderboard_service, today):
        gym = await leaderboard_service.get_page(LeaderboardQuery.from_params({'by': 'gym', 'gymId': '200'}), today)
        state = await leaderboard_service.get_page(LeaderboardQuery.from_params({'by': 'state', 'state': 'co'}), today)
        city = await leaderboard_service.get_page(LeaderboardQuery.from_params({'by': 'city', 'city': 'AUSTIN'}), today)

        assert ids(gym) == [4, 3]
        assert ids(state) == [4, 3]
        assert ids(city) == [1, 2]

    async def test_age_facet(self, leaderboard_service, today):
        exact = await leaderboard_service.get_page(LeaderboardQuery.from_params({'by': 'age', 'age': '26'}), today)
        ranged = await leaderboard_service.get_page(
            LeaderboardQuery.from_params({'by': 'age', 'ageMin': '26', 'ageMax': '30'}), today
        )
        assert ids(exact) == [5]
        assert ids(ranged) == [5, 1]

    @pytest.mark.parametrize("params", [{'by': 'class'}, {'by': 'age'}, {'by': 'galaxy'}])
    async def test_unmatched_facet_is_empty(self, leaderboard_service, today, params):
        page = await leaderboard_service.get_page(LeaderboardQuery.from_params(params), today)
        assert page.entries == []
        assert page.pagination.total == 0
        assert page.pagination.has_more is False

    async def test_name_search(self, leaderboard_service, today):
        page = await leaderboard_service.get_page(LeaderboardQuery.from_params({'searchName': 'A'}), today)
        assert ids(page) == [4, 3, 1]

    async def test_cursor_pagination(self, leaderboard_service, today):
        first = await leaderboard_service.get_page(LeaderboardQuery.from_params({'limit': '2'}), today)
        assert ids(first) == [4, 3]
        assert first.pagination.has_more is True
        assert first.pagination.next_cursor == "2"
        assert first.pagination.current_page == 1
        assert first.pagination.total_pages == 3

        last = await leaderboard_service.get_page(LeaderboardQuery.from_params({'limit': '2', 'cursor': '4'}), today)
        assert ids(last) == [2]
        assert last.entries[0].rank == 5
        assert last.pagination.has_more is False
        assert last.pagination.next_cursor is None
        assert last.pagination.current_page == 3

    async def test_jump_to_rank(self, leaderboard_service, today):
        page = await leaderboard_service.get_page(
            LeaderboardQuery.from_params({'limit': '2', 'jumpToRank': '4'}), today
        )
        assert [entry.rank for entry in page.entries] == [3, 4]
        assert page.jump_info.requested_rank == 4
        assert page.jump_info.actual_rank == 3
        assert page.jump_info.centered is True

    async def test_order_is_deterministic(self, leaderboard_service, today):
        first = await leaderboard_service.get_page(LeaderboardQuery(), today)
        second = await leaderboard_service.get_page(LeaderboardQuery(), today)
        assert first == second


class TestFetchFailures:

    async def test_fetch_failure_aborts_the_page(self, rating_cache, today):
        source = FailingSource()
        service = LeaderboardService(source, RatingService(source, rating_cache, rolling_days=0), fetch_timeout=1)
        with pytest.raises(PopulationFetchError):
            await service.get_page(LeaderboardQuery(), today)

    async def test_fetch_timeout(self, rating_cache, today):
        source = SlowSource()
        service = LeaderboardService(source, RatingService(source, rating_cache, rolling_days=0), fetch_timeout=0.01)
        with pytest.raises(PopulationFetchError) as exc_info:
            await service.get_page(LeaderboardQuery(), today)
        assert exc_info.value.user_message == "Internal server error"

    async def test_cancellation_propagates(self, rating_cache, today):
        source = SlowSource()
        service = LeaderboardService(source, RatingService(source, rating_cache, rolling_days=0), fetch_timeout=5)
        task = asyncio.ensure_future(service.get_page(LeaderboardQuery(), today))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_user_rating_fetch_failure(self, rating_cache):
        service = RatingService(FailingSource(), rating_cache, rolling_days=0, fetch_timeout=1)
        with pytest.raises(PopulationFetchError) as exc_info:
            await service.get_user_rating(1)
        assert exc_info.value.operation == "get_user_rating"

    async def test_snapshot_fetch_failure_is_not_cached(self, rating_cache):
        service = RatingService(FailingSource(), rating_cache, rolling_days=0, fetch_timeout=1)
        with pytest.raises(PopulationFetchError):
            await service.get_bundle(1)
        assert await rating_cache.get(1) is None

    async def test_snapshot_timeout_during_bundles(self, rating_cache):
        class SlowSnapshotSource:
            async def fetch_snapshot(self, rolling_days=None):
                await asyncio.sleep(10)

        service = RatingService(SlowSnapshotSource(), rating_cache, rolling_days=0, fetch_timeout=0.01)
        with pytest.raises(PopulationFetchError) as exc_info:
            await service.get_bundles([1, 2])
        assert exc_info.value.operation == "get_bundles"

    async def test_snapshot_failure_inside_page_keeps_its_operation(self, population_source, rating_cache, today):
        class SnapshotFailingSource(FailingSource):
            async def fetch_candidates(self, query, today):
                return await population_source.fetch_candidates(query, today)

        source = SnapshotFailingSource()
        service = LeaderboardService(source, RatingService(source, rating_cache, rolling_days=0), fetch_timeout=1)
        with pytest.raises(PopulationFetchError) as exc_info:
            await service.get_page(LeaderboardQuery(), today)
        assert exc_info.value.operation == "get_bundles"


class TestMetricLeaderboard:

    async def test_higher_is_better(self, leaderboard_service):
        entries = await leaderboard_service.get_metric_leaderboard(BENCH)

        assert [e.user_id for e in entries] == [6, 1, 2, 3]
        assert [e.value for e in entries] == [405, 315, 225, 135]
        assert [e.percentile for e in entries] == pytest.approx([100, 80, 60, 20])
        assert [e.band for e in entries] == ["diamond", "diamond", "gold", "bronze"]
        assert entries[0].display_name == "Ghost"

    async def test_lower_is_better(self, leaderboard_service):
        entries = await leaderboard_service.get_metric_leaderboard(MILE_RUN)

        assert [e.user_id for e in entries] == [4, 5, 2]
        assert [e.band for e in entries] == ["platinum", "silver", "bronze"]
        assert entries[0].percentile == pytest.approx(100)

    async def test_without_breakpoints(self, leaderboard_service):
        entries = await leaderboard_service.get_metric_leaderboard(PULL_UPS, limit=1)
        assert [e.user_id for e in entries] == [3]
        assert entries[0].band is None

    async def test_unknown_metric(self, leaderboard_service):
        with pytest.raises(MetricNotFoundError):
            await leaderboard_service.get_metric_leaderboard(12345)
