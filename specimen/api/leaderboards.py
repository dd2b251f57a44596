"""Leaderboard API routes."""

from fastapi import APIRouter, Depends, Query, Request

from specimen.config import Config
from specimen.constants import PaginationConstants
from specimen.data_models.leaderboard import LeaderboardQuery
from specimen.services.leaderboard import LeaderboardService
from specimen.api.dependencies import get_leaderboard_service

router = APIRouter(tags=["Leaderboards"])


@router.get(
    "/leaderboards",
    summary="Get a faceted leaderboard page",
    description="Rank onboarded users by rating with facet, filter, cursor and jump-to-rank support"
)
async def get_leaderboard(
    request: Request,
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    # Raw query strings are degraded leniently instead of rejected
    query = LeaderboardQuery.from_params(
        request.query_params,
        default_limit=Config.LEADERBOARD_DEFAULT_LIMIT
    )
    page = await service.get_page(query)
    return page.to_dict()


@router.get(
    "/metrics/{metric_id}/leaderboard",
    summary="Get the best entry per user for one metric"
)
async def get_metric_leaderboard(
    metric_id: int,
    limit: int = Query(PaginationConstants.METRIC_LEADERBOARD_LIMIT),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    entries = await service.get_metric_leaderboard(metric_id, limit)
    return {
        'success': True,
        'metricId': metric_id,
        'entries': [entry.to_dict() for entry in entries],
    }
