import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
import httpx
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from main import app
from models import Base, DocumentCategory
from database import get_db
from config import settings

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with TestingSessionLocal() as session:
        yield session
        await session.rollback()

@pytest_asyncio.fixture(scope="function")
async def categories(db_session: AsyncSession) -> Dict[str, DocumentCategory]:
    rows = [
        DocumentCategory(category_name="Nursing Notes", category_description="Shift and progress notes", is_active=True),
        DocumentCategory(category_name="Lab Reports", category_description="Lab results", is_active=True),
        DocumentCategory(category_name="Legacy Forms", category_description="Retired paper forms", is_active=False),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return {row.category_name: row for row in rows}

@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testnas") as client:
        yield client

    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def mock_nas_settings(tmp_path, monkeypatch):
    mock_upload_path = tmp_path / "nursing_archive_test"
    mock_upload_path.mkdir()
    monkeypatch.setattr(settings, 'UPLOAD_PATH', mock_upload_path)
    monkeypatch.setattr(settings, 'SCAN_SERVICE_URL', None)
    return settings
