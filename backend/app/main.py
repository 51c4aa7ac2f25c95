"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import settings
from app.database import engine, async_session, get_db
from app.models import Base
from app.services.attachment_service import AttachmentService, build_file_tree
from app.services.file_storage import FileStorageService

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, then load every stored attachment into the in-memory index."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    service = AttachmentService(build_file_tree(), FileStorageService())
    async with async_session() as session:
        await service.load_index(session)
    app.state.attachment_service = service

    yield

    # Cleanup
    await engine.dispose()


app = FastAPI(
    title="Product Attachments API",
    version="1.0.0",
    description="Products with attachments organized in a virtual folder tree.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from app.routes.products import router as products_router
from app.routes.attachments import router as attachments_router, index_router
app.include_router(products_router)
app.include_router(attachments_router)
app.include_router(index_router)
