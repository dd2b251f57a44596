"""
Pytest configuration and fixtures
"""

from datetime import date

import pytest

from specimen.data_models.ratings import MetricDefinition, MetricObservation, UserProfile
from specimen.services.leaderboard import LeaderboardService
from specimen.services.population import InMemoryPopulationSource
from specimen.services.rating_cache import InMemoryRatingCache
from specimen.services.rating_service import RatingService

TODAY = date(2026, 6, 1)

TITAN = 1
BODYWEIGHT = 2
SUPER_ATHLETE = 3

BENCH = 10
PULL_UPS = 20
MILE_RUN = 30


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def sample_metrics():
    """Three metrics across three classes; the mile run is lower-is-better"""
    return [
        MetricDefinition(
            id=BENCH, name="Bench Press", class_id=TITAN, unit="lbs",
            rating_breakpoints={"bronze": 135, "silver": 185, "gold": 225, "platinum": 275, "diamond": 315}
        ),
        MetricDefinition(id=PULL_UPS, name="Pull-ups", class_id=BODYWEIGHT, unit="reps"),
        MetricDefinition(
            id=MILE_RUN, name="Mile Run", class_id=SUPER_ATHLETE, higher_is_better=False, unit="minutes",
            rating_breakpoints={"bronze": 10, "silver": 8.5, "gold": 7, "platinum": 6, "diamond": 5}
        ),
    ]


@pytest.fixture
def sample_profiles():
    """Five onboarded users plus one who never finished onboarding"""
    return [
        UserProfile(
            id=1, display_name="Alice", date_of_birth=date(1996, 3, 10), gender="female",
            height_cm=165, weight_kg=60, primary_class_id=TITAN, primary_class_name="The Titan",
            gym_id=100, gym_name="Iron Temple", city="Austin", state="TX"
        ),
        UserProfile(
            id=2, display_name="bob", date_of_birth=date(1990, 7, 1), gender="male",
            height_cm=180, weight_kg=80, primary_class_id=TITAN, primary_class_name="The Titan",
            gym_id=100, gym_name="Iron Temple", city="Austin", state="TX"
        ),
        UserProfile(
            id=3, display_name="Carol", date_of_birth=date(2001, 1, 15), gender="female",
            height_cm=170, weight_kg=62, primary_class_id=BODYWEIGHT, primary_class_name="The Body Weight Master",
            gym_id=200, gym_name="Pullup Park", city="Denver", state="CO"
        ),
        UserProfile(
            id=4, display_name="Dan", date_of_birth=date(1985, 11, 30), gender="male",
            height_cm=175, weight_kg=90, primary_class_id=SUPER_ATHLETE, primary_class_name="The Super Athlete",
            gym_id=200, gym_name="Pullup Park", city="Denver", state="CO"
        ),
        UserProfile(
            id=5, display_name="Eve", date_of_birth=date(1999, 6, 2), gender="female",
            primary_class_id=SUPER_ATHLETE, primary_class_name="The Super Athlete",
        ),
        UserProfile(id=6, display_name="Ghost", date_of_birth=None, gender=None, primary_class_id=TITAN),
    ]


@pytest.fixture
def sample_observations():
    """Counted observations plus one excluded entry that must never count"""
    return [
        MetricObservation(user_id=1, metric_id=BENCH, value=315),
        MetricObservation(user_id=2, metric_id=BENCH, value=225),
        MetricObservation(user_id=2, metric_id=BENCH, value=185),
        MetricObservation(user_id=3, metric_id=BENCH, value=135),
        MetricObservation(user_id=6, metric_id=BENCH, value=405),
        MetricObservation(user_id=3, metric_id=PULL_UPS, value=25),
        MetricObservation(user_id=1, metric_id=PULL_UPS, value=12),
        MetricObservation(user_id=4, metric_id=MILE_RUN, value=5.5),
        MetricObservation(user_id=5, metric_id=MILE_RUN, value=7.5),
        MetricObservation(user_id=2, metric_id=MILE_RUN, value=9.0),
        MetricObservation(user_id=5, metric_id=BENCH, value=500, included_in_ranking=False),
    ]


@pytest.fixture
def population_source(sample_metrics, sample_observations, sample_profiles):
    return InMemoryPopulationSource(sample_metrics, sample_observations, sample_profiles)


@pytest.fixture
def rating_cache():
    return InMemoryRatingCache(ttl=60, max_size=100)


@pytest.fixture
def rating_service(population_source, rating_cache):
    return RatingService(population_source, rating_cache, rolling_days=0)


@pytest.fixture
def leaderboard_service(population_source, rating_service):
    return LeaderboardService(population_source, rating_service, fetch_timeout=5)
