from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, Float,
    ForeignKey, JSON, Enum as SQLEnum, Index
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from enum import Enum

Base = declarative_base()

class EntryStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Gym(Base):
    __tablename__ = 'gyms'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)

    # Relationships
    members = relationship("User", back_populates="gym")

    def __repr__(self):
        return f"<Gym(name='{self.name}', city='{self.city}', state='{self.state}')>"

class SpecializationClass(Base):
    __tablename__ = 'specialization_classes'

    id = Column(Integer, primary_key=True)
    slug = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)

    # Relationships
    metrics = relationship("Metric", back_populates="specialization_class")

    def __repr__(self):
        return f"<SpecializationClass(slug='{self.slug}', name='{self.name}')>"

class Metric(Base):
    __tablename__ = 'metrics'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    unit = Column(String(20), nullable=True)
    class_id = Column(Integer, ForeignKey('specialization_classes.id'), nullable=True)
    higher_is_better = Column(Boolean, nullable=False, default=True)  # False for timed events
    rank_breakpoints = Column(JSON, nullable=True)  # {"bronze": 135, ..., "diamond": 405}

    # Relationships
    specialization_class = relationship("SpecializationClass", back_populates="metrics")
    entries = relationship("MetricEntry", back_populates="metric", cascade="all, delete-orphan")

    def __repr__(self):
        direction = "HIGH" if self.higher_is_better else "LOW"
        return f"<Metric(name='{self.name}', unit='{self.unit}', direction='{direction}')>"

class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=True, unique=True)
    display_name = Column(String(100), nullable=True, index=True)

    # Onboarding fields - all three are required to appear on leaderboards
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)

    # Body measurements used for the BMI tiebreak
    height_cm = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)

    primary_class_id = Column(Integer, ForeignKey('specialization_classes.id'), nullable=True)
    gym_id = Column(Integer, ForeignKey('gyms.id'), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    primary_class = relationship("SpecializationClass")
    gym = relationship("Gym", back_populates="members")
    metric_entries = relationship("MetricEntry", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_onboarded(self) -> bool:
        return bool(self.display_name) and self.date_of_birth is not None and bool(self.gender)

    def __repr__(self):
        return f"<User(id={self.id}, display_name='{self.display_name}')>"

class MetricEntry(Base):
    __tablename__ = 'metric_entries'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    metric_id = Column(Integer, ForeignKey('metrics.id'), nullable=False)
    value = Column(Float, nullable=False)
    status = Column(SQLEnum(EntryStatus), nullable=False, default=EntryStatus.PENDING)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    user = relationship("User", back_populates="metric_entries")
    metric = relationship("Metric", back_populates="entries")

    __table_args__ = (
        Index('ix_metric_entries_metric_status', 'metric_id', 'status'),
        Index('ix_metric_entries_user_status', 'user_id', 'status'),
    )

    @property
    def is_counted(self) -> bool:
        return self.status == EntryStatus.APPROVED

    def __repr__(self):
        return f"<MetricEntry(user_id={self.user_id}, metric_id={self.metric_id}, value={self.value}, status='{self.status.value}')>"
