"""
Shared pytest fixtures.

pytest-asyncio (asyncio_mode=auto) gives each test its own event loop, so
every test builds its own engine on a fresh SQLite file under tmp_path and
creates the schema from model metadata. Nothing is shared between tests and
there is no cleanup to do.

HTTP tests drive ``create_app`` through httpx's ASGITransport with the same
Database object, so rows seeded through ``db`` are visible to the app.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from studyflow.config import Settings
from studyflow.database import Database
from studyflow.main import create_app
from studyflow.services.auth_service import TokenIssuer


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'studyflow.db'}",
        secret_key="test-secret",
    )


@pytest.fixture
async def database(settings):
    database = Database.from_settings(settings)
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def db(database):
    async with database.sessionmaker() as session:
        yield session


@pytest.fixture
def token_issuer(settings) -> TokenIssuer:
    return TokenIssuer(settings)


@pytest.fixture
async def client(settings, database):
    app = create_app(settings, database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
