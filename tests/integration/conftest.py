import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.audit_service import NullAuditService
from tests.fakes import RecordingJobSource


@pytest_asyncio.fixture
async def engine():
    # In-memory SQLite shared by every session of a test
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with Session() as session:
        yield session


@pytest.fixture
def job_source():
    return RecordingJobSource()


@pytest_asyncio.fixture
async def app(engine, job_source):
    from src.api.app import create_app
    from config import ApplicationConfig
    from src.depends import get_audit_service, get_current_user, get_job_source, get_unit_of_work

    app = create_app(ApplicationConfig)

    Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    def override_get_unit_of_work():
        return SqlAlchemyUnitOfWork(Session)

    async def override_get_audit_service():
        return NullAuditService()

    async def override_get_current_user():
        return {"user_id": "test-user-id"}

    app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work
    app.dependency_overrides[get_job_source] = lambda: job_source
    app.dependency_overrides[get_audit_service] = override_get_audit_service
    app.dependency_overrides[get_current_user] = override_get_current_user

    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
