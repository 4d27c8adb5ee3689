from collections.abc import Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from swucol.db.database import get_session
from swucol.db.migrations import ensure_schema
from swucol.main import app

CSV_HEADER = (
    "Set,Card Number,Card Name,Card Title,Card Type,Aspects,Variant Type,"
    "Rarity,Foil,Stamp,Artist,Owned Count,Group Owned Count"
)


@pytest.fixture
def csv_header() -> str:
    return CSV_HEADER


@pytest.fixture
def make_csv() -> Callable[..., bytes]:
    """Build a CSV export with the standard header from data rows."""

    def build(*rows: str) -> bytes:
        return "\n".join([CSV_HEADER, *rows]).encode("utf-8")

    return build


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def async_engine(database_url: str):
    """Create a migrated SQLite database in a temporary file."""
    engine = create_async_engine(database_url, echo=False)
    await ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    path = tmp_path / "images"
    path.mkdir()
    return path


@pytest.fixture
async def client(session_factory):
    """Provide an async test client with overridden database session."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
