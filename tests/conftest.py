"""
Pytest fixtures for the status board tests.

Runs everything against an in-memory SQLite database; no PostgreSQL needed.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("LOGFIRE_TOKEN", None)

from collections.abc import Generator
from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from statusboard.database import Base, get_db
from statusboard.main import app
from statusboard.models import (
    HomeAsset,
    InventoryItem,
    MaintenanceTask,
    Property,
    RiskAssessmentReport,
    Room,
    Warranty,
)

NOW = datetime(2026, 6, 15, 12, 0, 0)


def years_ago(years: float, now: datetime = NOW) -> date:
    return (now - timedelta(days=365.25 * years)).date()


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """TestClient whose requests share the test session."""

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def prop(db: Session) -> Property:
    p = Property(name="Maple Street", address="12 Maple St")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def kitchen(db: Session, prop: Property) -> Room:
    room = Room(property_id=prop.id, name="Kitchen")
    db.add(room)
    db.commit()
    return room


@pytest.fixture
def add_inventory(db: Session, prop: Property):
    """Factory for possessions on the sample property."""

    def _add(name: str, category: str | None = "APPLIANCE", **fields) -> InventoryItem:
        item = InventoryItem(property_id=prop.id, name=name, category=category, **fields)
        db.add(item)
        db.commit()
        return item

    return _add


@pytest.fixture
def add_asset(db: Session, prop: Property):
    """Factory for building-system assets on the sample property."""

    def _add(asset_type: str, installation_year: int | None = None) -> HomeAsset:
        asset = HomeAsset(
            property_id=prop.id, asset_type=asset_type, installation_year=installation_year
        )
        db.add(asset)
        db.commit()
        return asset

    return _add


@pytest.fixture
def add_warranty(db: Session, prop: Property):
    def _add(expiry_date: date | None, home_asset: HomeAsset | None = None) -> Warranty:
        warranty = Warranty(
            property_id=prop.id,
            home_asset_id=home_asset.id if home_asset else None,
            provider_name="Acme Home Warranty",
            expiry_date=expiry_date,
        )
        db.add(warranty)
        db.commit()
        return warranty

    return _add


@pytest.fixture
def add_task(db: Session, prop: Property):
    def _add(
        home_asset: HomeAsset,
        priority: str = "HIGH",
        next_due_date: date | None = None,
        status: str = "PENDING",
    ) -> MaintenanceTask:
        task = MaintenanceTask(
            property_id=prop.id,
            home_asset_id=home_asset.id,
            title=f"Service {home_asset.asset_type}",
            priority=priority,
            status=status,
            next_due_date=next_due_date,
        )
        db.add(task)
        db.commit()
        return task

    return _add


@pytest.fixture
def add_risk_report(db: Session, prop: Property):
    def _add(details) -> RiskAssessmentReport:
        report = RiskAssessmentReport(property_id=prop.id, details=details)
        db.add(report)
        db.commit()
        return report

    return _add
