"""
FastAPI application factory.

The app owns the storage adapter, the rating cache and the services for its
lifetime. Tests inject an in-memory population source and cache instead.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from specimen.config import Config
from specimen.database.database import Database
from specimen.services.leaderboard import LeaderboardService
from specimen.services.population import PopulationSource, SqlPopulationSource
from specimen.services.rating_cache import InMemoryRatingCache, RatingCache, create_rating_cache
from specimen.services.rating_service import RatingService
from specimen.utils.exceptions import MetricNotFoundError, RatingException, UserNotFoundError
from specimen.utils.logger import setup_logger
from specimen.api import leaderboards, ratings

logger = setup_logger(__name__)


def _install_services(app: FastAPI, source: PopulationSource, cache: RatingCache):
    rating_service = RatingService(source, cache)
    app.state.rating_service = rating_service
    app.state.leaderboard_service = LeaderboardService(source, rating_service)


def create_app(
    source: Optional[PopulationSource] = None,
    cache: Optional[RatingCache] = None,
    database_url: Optional[str] = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        source: Population source to serve from; a SQL source over
            `database_url` (or Config.DATABASE_URL) is created at startup when omitted
        cache: Rating cache; when omitted the configured backend is used for the
            SQL source and an in-memory cache for an injected source
        database_url: Database URL for the default SQL source
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = None
        if source is None:
            Config.validate()
            database = Database(database_url)
            await database.initialize()
            _install_services(app, SqlPopulationSource(database), cache or await create_rating_cache())
        logger.info("Specimen API started")
        try:
            yield
        finally:
            if database is not None:
                await database.close()
            logger.info("Specimen API stopped")

    app = FastAPI(title="Specimen Rating API", lifespan=lifespan)

    if source is not None:
        _install_services(app, source, cache or InMemoryRatingCache())

    @app.exception_handler(UserNotFoundError)
    @app.exception_handler(MetricNotFoundError)
    async def not_found_handler(request: Request, exc: RatingException):
        return JSONResponse(status_code=404, content={'success': False, 'error': exc.user_message})

    @app.exception_handler(RatingException)
    async def rating_error_handler(request: Request, exc: RatingException):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={'success': False, 'error': "Internal server error"})

    @app.get("/health")
    async def health():
        return {'status': 'ok', 'service': 'specimen'}

    app.include_router(leaderboards.router)
    app.include_router(ratings.router)
    return app
