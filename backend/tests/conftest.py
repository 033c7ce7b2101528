"""
Pytest configuration and fixtures for Halo backend tests
"""
import os
import tempfile
from datetime import datetime
from pathlib import Path

# Point the app at a throwaway database before halo.config is imported
_TEMP_DIR = tempfile.mkdtemp(prefix="halo-tests-")
os.environ["DATABASE_PATH"] = str(Path(_TEMP_DIR) / "halo_test.db")
os.environ.setdefault("DEMO_MODE", "true")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from halo.db.models import Base
from halo.mocks.catalog import lookup_product
from halo.models.intents import StructuredIntent
from halo.protocols import create_default_registry
from halo.services.step_up import StepUpVerificationService


# Fixed reference time for card expiry and OTP windows
NOW = datetime(2026, 1, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def registry():
    """Fresh default registry per test"""
    return create_default_registry()


@pytest.fixture
def catalog():
    return lookup_product


@pytest.fixture
def step_up():
    """Step-up service with the default 100 threshold and demo OTP display"""
    return StepUpVerificationService(threshold=100.0, otp_length=6, demo_mode=True)


@pytest.fixture
def intent():
    return StructuredIntent(
        action="buy",
        item="nike shoes",
        amount=120.0,
        currency="USD",
        shipping_speed="express",
    )


@pytest.fixture
async def db():
    """
    In-memory aiosqlite session with all tables created
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()
