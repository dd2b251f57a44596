from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func
from contextlib import asynccontextmanager

from specimen.config import Config
from specimen.data_models.leaderboard import CandidateFilter
from specimen.data_models.ratings import MetricDefinition, MetricObservation, UserProfile
from specimen.database.models import (
    Base, Gym, SpecializationClass, Metric, User, MetricEntry, EntryStatus
)
from specimen.utils.exceptions import DatabaseError
from specimen.utils.logger import setup_logger
from specimen.utils.ranking import RankingUtility

DEFAULT_CLASSES = [
    ("titan", "The Titan"),
    ("beast", "The Beast"),
    ("bodyweight_master", "The Body Weight Master"),
    ("hunter_gatherer", "The Hunter Gatherer"),
    ("super_athlete", "The Super Athlete"),
]

# (name, unit, class slug, higher_is_better)
DEFAULT_METRICS = [
    ("Bench Press", "lbs", "titan", True),
    ("Squat", "lbs", "titan", True),
    ("Deadlift", "lbs", "titan", True),
    ("Leg Press", "lbs", "beast", True),
    ("Lat Pulldown", "lbs", "beast", True),
    ("Pull-ups", "reps", "bodyweight_master", True),
    ("Push-ups", "reps", "bodyweight_master", True),
    ("Dips", "reps", "bodyweight_master", True),
    ("Mile Run", "minutes", "super_athlete", False),
    ("100m Dash", "seconds", "super_athlete", False),
    ("5k Run", "minutes", "hunter_gatherer", False),
    ("10k Run", "minutes", "hunter_gatherer", False),
]

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None

    async def initialize(self, seed_defaults: bool = True):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

        if seed_defaults:
            await self.initialize_default_data()

    async def initialize_default_data(self):
        """Initialize default specialization classes and the metric catalog"""
        async with self.transaction() as session:
            result = await session.execute(select(func.count(SpecializationClass.id)))
            if result.scalar() > 0:
                return

            self.logger.info("Initializing default classes and metrics...")
            classes = {slug: SpecializationClass(slug=slug, name=name) for slug, name in DEFAULT_CLASSES}
            session.add_all(classes.values())
            await session.flush()

            for name, unit, slug, higher_is_better in DEFAULT_METRICS:
                session.add(Metric(
                    name=name,
                    unit=unit,
                    class_id=classes[slug].id,
                    higher_is_better=higher_is_better
                ))

            self.logger.info(f"Added {len(classes)} classes and {len(DEFAULT_METRICS)} metrics")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context are committed together on success,
        or rolled back together on failure.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()

    # Write helpers

    async def create_gym(self, name: str, city: str = None, state: str = None) -> Gym:
        async with self.transaction() as session:
            gym = Gym(name=name, city=city, state=state)
            session.add(gym)
            await session.flush()
            return gym

    async def create_metric(self, name: str, class_id: Optional[int], higher_is_better: bool = True,
                            unit: str = None, rank_breakpoints: Optional[Dict[str, float]] = None) -> Metric:
        async with self.transaction() as session:
            metric = Metric(
                name=name,
                unit=unit,
                class_id=class_id,
                higher_is_better=higher_is_better,
                rank_breakpoints=rank_breakpoints
            )
            session.add(metric)
            await session.flush()
            return metric

    async def create_user(self, display_name: Optional[str], date_of_birth: Optional[date] = None,
                          gender: Optional[str] = None, height_cm: float = None, weight_kg: float = None,
                          primary_class_id: int = None, gym_id: int = None, email: str = None) -> User:
        async with self.transaction() as session:
            user = User(
                email=email,
                display_name=display_name,
                date_of_birth=date_of_birth,
                gender=gender,
                height_cm=height_cm,
                weight_kg=weight_kg,
                primary_class_id=primary_class_id,
                gym_id=gym_id
            )
            session.add(user)
            await session.flush()
            return user

    async def add_entry(self, user_id: int, metric_id: int, value: float,
                        status: EntryStatus = EntryStatus.PENDING,
                        created_at: Optional[datetime] = None) -> MetricEntry:
        """Record a raw metric value; only APPROVED entries join the population"""
        async with self.transaction() as session:
            entry = MetricEntry(user_id=user_id, metric_id=metric_id, value=value, status=status)
            if created_at is not None:
                entry.created_at = created_at
            session.add(entry)
            await session.flush()
            return entry

    async def set_entry_status(self, entry_id: int, status: EntryStatus) -> MetricEntry:
        async with self.transaction() as session:
            entry = await session.get(MetricEntry, entry_id)
            if entry is None:
                raise DatabaseError("set_entry_status", f"entry {entry_id} not found")
            entry.status = status
            return entry

    # Population reads

    async def get_all_classes(self) -> List[SpecializationClass]:
        async with self.get_session() as session:
            result = await session.execute(select(SpecializationClass).order_by(SpecializationClass.id))
            return list(result.scalars().all())

    async def get_metric_definitions(self) -> List[MetricDefinition]:
        async with self.get_session() as session:
            result = await session.execute(select(Metric).order_by(Metric.id))
            return [self._to_definition(metric) for metric in result.scalars().all()]

    async def get_metric_definition(self, metric_id: int) -> Optional[MetricDefinition]:
        async with self.get_session() as session:
            metric = await session.get(Metric, metric_id)
            return self._to_definition(metric) if metric else None

    async def get_counted_observations(self, metric_id: Optional[int] = None,
                                       rolling_days: Optional[int] = None) -> List[MetricObservation]:
        """Get APPROVED entries, optionally for one metric and within a rolling window"""
        query = select(
            MetricEntry.user_id, MetricEntry.metric_id, MetricEntry.value, MetricEntry.created_at
        ).where(MetricEntry.status == EntryStatus.APPROVED)

        if metric_id is not None:
            query = query.where(MetricEntry.metric_id == metric_id)
        if rolling_days:
            cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=rolling_days)
            query = query.where(MetricEntry.created_at >= cutoff)

        async with self.get_session() as session:
            result = await session.execute(query)
            return [
                MetricObservation(
                    user_id=row.user_id,
                    metric_id=row.metric_id,
                    value=row.value,
                    included_in_ranking=True,
                    recorded_at=row.created_at
                )
                for row in result
            ]

    async def get_user_profiles(self, filters: Optional[CandidateFilter] = None,
                                today: Optional[date] = None,
                                onboarded_only: bool = True) -> List[UserProfile]:
        """Get user profiles with leaderboard filters pushed down into SQL"""
        filters = filters or CandidateFilter()
        today = today or date.today()

        query = select(User).options(selectinload(User.gym), selectinload(User.primary_class))

        if onboarded_only:
            query = query.where(
                User.display_name.isnot(None),
                User.date_of_birth.isnot(None),
                User.gender.isnot(None)
            )
        if filters.class_id is not None:
            query = query.where(User.primary_class_id == filters.class_id)
        if filters.gym_id is not None:
            query = query.where(User.gym_id == filters.gym_id)
        if filters.state or filters.city:
            query = query.join(Gym, User.gym_id == Gym.id)
            if filters.state:
                query = query.where(func.lower(Gym.state) == filters.state.lower())
            if filters.city:
                query = query.where(func.lower(Gym.city) == filters.city.lower())
        if filters.search_name:
            query = query.where(User.display_name.ilike(f"%{filters.search_name}%"))

        born_after, born_on_or_before = RankingUtility.birth_date_bounds(filters, today)
        if born_after is not None:
            query = query.where(User.date_of_birth > born_after)
        if born_on_or_before is not None:
            query = query.where(User.date_of_birth <= born_on_or_before)

        async with self.get_session() as session:
            result = await session.execute(query.order_by(User.id))
            return [self._to_profile(user) for user in result.scalars().all()]

    async def get_user_profile(self, user_id: int) -> Optional[UserProfile]:
        async with self.get_session() as session:
            query = (
                select(User)
                .options(selectinload(User.gym), selectinload(User.primary_class))
                .where(User.id == user_id)
            )
            user = await session.scalar(query)
            return self._to_profile(user) if user else None

    async def get_display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        async with self.get_session() as session:
            result = await session.execute(
                select(User.id, User.display_name).where(User.id.in_(user_ids))
            )
            return {row.id: row.display_name for row in result}

    @staticmethod
    def _to_definition(metric: Metric) -> MetricDefinition:
        return MetricDefinition(
            id=metric.id,
            name=metric.name,
            class_id=metric.class_id,
            higher_is_better=bool(metric.higher_is_better),
            unit=metric.unit,
            rating_breakpoints=metric.rank_breakpoints
        )

    @staticmethod
    def _to_profile(user: User) -> UserProfile:
        return UserProfile(
            id=user.id,
            display_name=user.display_name,
            date_of_birth=user.date_of_birth,
            gender=user.gender,
            height_cm=user.height_cm,
            weight_kg=user.weight_kg,
            primary_class_id=user.primary_class_id,
            primary_class_name=user.primary_class.name if user.primary_class else None,
            gym_id=user.gym_id,
            gym_name=user.gym.name if user.gym else None,
            city=user.gym.city if user.gym else None,
            state=user.gym.state if user.gym else None
        )
