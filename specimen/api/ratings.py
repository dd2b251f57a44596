"""User rating API routes."""

from fastapi import APIRouter, Depends

from specimen.services.rating_service import RatingService
from specimen.api.dependencies import get_rating_service

router = APIRouter(prefix="/users", tags=["Ratings"])


@router.get("/{user_id}/rating", summary="Get a user's rating bundle")
async def get_user_rating(
    user_id: int,
    service: RatingService = Depends(get_rating_service)
):
    bundle = await service.get_user_rating(user_id)
    return bundle.to_dict()


@router.delete("/{user_id}/rating/cache", summary="Evict a user's cached rating bundle")
async def invalidate_user_rating(
    user_id: int,
    service: RatingService = Depends(get_rating_service)
):
    await service.invalidate_user(user_id)
    return {'success': True, 'userId': user_id}
