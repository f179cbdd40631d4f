"""Database models and setup for the delivery pricing datastore."""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional
import os

from pydantic import ValidationError
from sqlalchemy import create_engine, Column, Integer, Float, String, Boolean, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from app.exceptions import MalformedPricingPlan
from app.models import PricingPlan, PricingPlanUpdate, ServiceType

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PricingPlanDB(Base):
    """Database model for storing one pricing plan per service type."""
    __tablename__ = "pricing_plans"

    id = Column(Integer, primary_key=True, index=True)
    service_type = Column(String, unique=True, nullable=False, index=True)
    base_fare = Column(Float, nullable=False, default=0.0)
    base_distance_km = Column(Float, nullable=False, default=0.0)
    per_km_rate = Column(Float, nullable=False, default=0.0)
    per_min_rate = Column(Float, nullable=False, default=0.0)
    minimum_fare = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, nullable=True, default=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, default=_utcnow)

    def __repr__(self):
        return (
            f"<PricingPlan(service_type={self.service_type}, base_fare={self.base_fare}, "
            f"per_km_rate={self.per_km_rate}, minimum_fare={self.minimum_fare})>"
        )


# Default plans seeded into an empty datastore
DEFAULT_PRICING_PLANS = [
    # service_type, base_fare, base_distance_km, per_km_rate, minimum_fare
    (ServiceType.FOOD, 50.0, 2.0, 15.0, 80.0),
    (ServiceType.GROCERY, 80.0, 3.0, 18.0, 120.0),
    (ServiceType.PARCEL, 100.0, 3.0, 20.0, 150.0),
]


def plan_from_row(row: PricingPlanDB) -> PricingPlan:
    """
    Convert an ORM row into a validated PricingPlan.

    Raises:
        MalformedPricingPlan: if the row does not satisfy the plan shape
    """
    try:
        return PricingPlan(
            service_type=row.service_type,
            base_fare=row.base_fare,
            base_distance_km=row.base_distance_km,
            per_km_rate=row.per_km_rate,
            per_min_rate=row.per_min_rate if row.per_min_rate is not None else 0.0,
            minimum_fare=row.minimum_fare,
            is_active=bool(row.is_active),
            updated_at=row.updated_at,
        )
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise MalformedPricingPlan(str(row.service_type), errors) from e


class DatabaseManager:
    """Manager class for pricing plan database operations."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or os.getenv(
            "DATABASE_URL",
            "sqlite:///./delivery_pricing.db"
        )

        # Create engine with appropriate settings for SQLite
        connect_args = {"check_same_thread": False} if "sqlite" in self.database_url else {}
        self.engine = create_engine(self.database_url, connect_args=connect_args)

        # Create session factory
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        # Create tables if they don't exist
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def init_default_pricing_plans(self) -> int:
        """Seed default plans for service types that have no row yet."""
        session = self.get_session()
        try:
            existing = {row.service_type for row in session.query(PricingPlanDB).all()}
            added = 0
            for service_type, base_fare, base_km, per_km, minimum in DEFAULT_PRICING_PLANS:
                if service_type.value in existing:
                    continue
                session.add(PricingPlanDB(
                    service_type=service_type.value,
                    base_fare=base_fare,
                    base_distance_km=base_km,
                    per_km_rate=per_km,
                    minimum_fare=minimum,
                    is_active=True,
                ))
                added += 1
            if added:
                session.commit()
                logger.info("Initialized %d default pricing plans", added)
            return added
        finally:
            session.close()

    def get_pricing_plan(self, service_type: ServiceType) -> Optional[PricingPlan]:
        """
        Get the active plan for a service type.

        Returns:
            Validated plan, or None when no active row exists

        Raises:
            MalformedPricingPlan: if the stored row fails validation
        """
        session = self.get_session()
        try:
            row = session.query(PricingPlanDB).filter_by(
                service_type=ServiceType(service_type).value
            ).first()
            if row is None or not row.is_active:
                return None
            return plan_from_row(row)
        finally:
            session.close()

    def get_all_pricing_plans(self) -> Dict[str, PricingPlan]:
        """Retrieve every stored plan, active or not, keyed by service type."""
        session = self.get_session()
        try:
            rows = session.query(PricingPlanDB).order_by(PricingPlanDB.service_type).all()
            return {row.service_type: plan_from_row(row) for row in rows}
        finally:
            session.close()

    def count_active_plans(self) -> int:
        """Count plans currently marked active."""
        session = self.get_session()
        try:
            return session.query(PricingPlanDB).filter_by(is_active=True).count()
        finally:
            session.close()

    def upsert_pricing_plan(self, service_type: ServiceType, update: PricingPlanUpdate) -> PricingPlan:
        """Create or replace the plan for a service type."""
        service_type = ServiceType(service_type)
        session = self.get_session()
        try:
            row = session.query(PricingPlanDB).filter_by(service_type=service_type.value).first()
            if row is None:
                row = PricingPlanDB(service_type=service_type.value)
                session.add(row)

            row.base_fare = update.base_fare
            row.base_distance_km = update.base_distance_km
            row.per_km_rate = update.per_km_rate
            row.per_min_rate = update.per_min_rate
            row.minimum_fare = update.minimum_fare
            row.is_active = update.is_active
            row.updated_at = _utcnow()

            session.commit()
            plan = plan_from_row(row)
            logger.info("Saved pricing plan for %s: %s", service_type.value, row)
            return plan
        finally:
            session.close()

    def deactivate_pricing_plan(self, service_type: ServiceType) -> bool:
        """Mark a plan inactive. Returns False if no plan exists."""
        service_type = ServiceType(service_type)
        session = self.get_session()
        try:
            row = session.query(PricingPlanDB).filter_by(service_type=service_type.value).first()
            if row is None:
                return False
            row.is_active = False
            row.updated_at = _utcnow()
            session.commit()
            logger.info("Deactivated pricing plan for %s", service_type.value)
            return True
        finally:
            session.close()

# Singleton instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get singleton database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
        _db_manager.init_default_pricing_plans()
    return _db_manager


def reset_db_manager(manager: Optional[DatabaseManager] = None) -> None:
    """Replace the singleton, e.g. to point it at another database."""
    global _db_manager
    _db_manager = manager
