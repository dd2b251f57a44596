from fastapi import Request

from specimen.services.leaderboard import LeaderboardService
from specimen.services.rating_service import RatingService


def get_leaderboard_service(request: Request) -> LeaderboardService:
    return request.app.state.leaderboard_service


def get_rating_service(request: Request) -> RatingService:
    return request.app.state.rating_service
