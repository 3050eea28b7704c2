"""
School Directory Backend: Test Configuration (conftest.py)
===========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Repository tests run against an in-memory SQLite database (aiosqlite),
       created fresh for every test. API tests drive the FastAPI app through
       httpx's ASGITransport with the services swapped via dependency
       overrides; Gemini is always mocked.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine:          in-memory SQLite engine with the schools table
    ├── session_factory:    async_sessionmaker bound to db_engine
    ├── school_service:     SchoolService over session_factory
    ├── temp_storage:       temporary directory for uploads
    ├── upload_service:     FileService rooted at temp_storage
    ├── describer:          mocked description generator
    ├── sample_image_bytes: minimal JPEG for upload tests
    ├── school_data:        a valid School candidate
    └── test_client:        HTTPX AsyncClient against the app
"""

import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

# Must run before any app import: settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="schooldir_test_")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import build_session_factory, create_schema
from app.services.file_service import FileService
from app.services.llm_base import LLMService
from app.services.school_service import SchoolService


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    A private in-memory database.

    StaticPool keeps the single connection alive, otherwise every new
    connection would open an empty database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def school_service(session_factory):
    return SchoolService(session_factory)


# ══════════════════════════════════════════════════════════════════════════
# Files and Gemini
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    """A fresh upload directory for each test (removed by pytest)."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def upload_service(temp_storage):
    return FileService(storage_root=temp_storage)


@pytest.fixture
def describer():
    """
    Stand-in for the Gemini description service.

    spec=LLMService: no circuit_breaker attribute, so the health route only
    consults health_check().
    """
    service = MagicMock(spec=LLMService)
    service.generate_description = AsyncMock(
        return_value="Oak Hill Academy is a leading institution in Springfield."
    )
    service.health_check = AsyncMock(return_value=True)
    return service


@pytest.fixture
def sample_image_bytes():
    """
    Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9).

    Not a real picture, but the header is enough for MIME sniffing.
    """
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


# ══════════════════════════════════════════════════════════════════════════
# Data
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def school_data():
    """A candidate that passes every School rule."""
    return {
        "name": "Oak Hill Academy",
        "address": "12 Elm Street, North District",
        "city": "Springfield",
        "state": "Illinois",
        "contact": "9876543210",
        "email_id": "admin@oakhill.edu",
        "image": "https://images.oakhill.edu/campus.jpg",
    }


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(school_service, upload_service, describer):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from app.main import app
    from app.routes.schools import (
        get_description_service,
        get_file_service,
        get_school_service,
    )

    app.dependency_overrides[get_school_service] = lambda: school_service
    app.dependency_overrides[get_file_service] = lambda: upload_service
    app.dependency_overrides[get_description_service] = lambda: describer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
