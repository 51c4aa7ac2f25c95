"""Pytest configuration and shared fixtures"""

import os
import tempfile
from datetime import datetime, timezone

# Settings are read at import time; point them at throwaway resources first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FILE_STORAGE_PATH", tempfile.mkdtemp(prefix="attachments-test-"))

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.database import get_db  # noqa: E402
from app.models import Base, Product  # noqa: E402
from app.services.attachment_service import AttachmentService  # noqa: E402
from app.services.attachments import FileMetadata, FileTree  # noqa: E402
from app.services.file_storage import FileStorageService  # noqa: E402

TEST_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "pdf", "doc", "docx", "txt", "zip", "xlsx", "csv"]


def make_metadata(owner_id: int, path: str, size: int = 100, original_name: str | None = None) -> FileMetadata:
    """Build a FileMetadata whose extension follows the path's filename."""
    filename = path.rstrip("/").split("/")[-1]
    return FileMetadata(
        original_name=original_name or filename,
        stored_name=filename,
        path=path,
        size=size,
        extension=filename.rsplit(".", 1)[-1].lower(),
        mime_type="application/octet-stream",
        owner_id=owner_id,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def file_tree() -> FileTree:
    return FileTree(max_depth=10, allowed_extensions=TEST_EXTENSIONS)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> FileStorageService:
    return FileStorageService(tmp_path / "uploads")


@pytest.fixture
def service(file_tree, storage) -> AttachmentService:
    return AttachmentService(file_tree, storage)


@pytest_asyncio.fixture
async def product(session_factory) -> Product:
    async with session_factory() as session:
        product = Product(name="Desk lamp", description="Adjustable")
        session.add(product)
        await session.commit()
        await session.refresh(product)
        return product


@pytest_asyncio.fixture
async def client(session_factory, service):
    """HTTP client bound to the app, with its DB and attachment service swapped for test ones."""
    from app.main import app

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.state.attachment_service = service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
