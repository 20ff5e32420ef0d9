import os

import pytest

import salon_booking.models  # noqa: F401
from salon_booking.core.database import (
    Base,
    create_engine,
    create_session_factory,
    init_db,
)


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh database for each test."""
    database_url = os.getenv(
        "TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    )
    engine = create_engine(database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
    await init_db(engine, create_tables=True)

    yield create_session_factory(engine)

    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
