"""Product attachments API routes."""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, File as FastAPIFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.attachment import (
    AttachmentResponse,
    AttachmentStatsResponse,
    DeleteFolderResponse,
    FileNodeResponse,
    ReindexResponse,
    SyncResponse,
)
from app.services.attachment_service import (
    AttachmentNotFoundError,
    AttachmentService,
    ProductNotFoundError,
)
from app.services.attachments import AttachmentValidationError

router = APIRouter(prefix="/api/products/{product_id}/attachments", tags=["attachments"])
index_router = APIRouter(prefix="/api/attachments", tags=["attachments"])


def get_attachment_service(request: Request) -> AttachmentService:
    """FastAPI dependency returning the service created in the app lifespan."""
    return request.app.state.attachment_service


def _require_path(path: str | None) -> str:
    if not path or not path.strip("/ "):
        raise HTTPException(status_code=400, detail="Path parameter is required")
    return path


@router.post("/upload", response_model=AttachmentResponse, status_code=201)
async def upload_file(
    product_id: int,
    folder: str = Query("", description="Folder path; the filename is generated"),
    file: UploadFile | None = FastAPIFile(None),
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Upload a file attachment into a product folder."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    contents = await file.read()
    try:
        return await service.upload_file(
            db,
            product_id,
            contents,
            file.filename or "unnamed",
            file.content_type,
            folder,
        )
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AttachmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/tree", response_model=FileNodeResponse, response_model_exclude_none=True)
async def get_file_tree(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Get the folder tree of a product's attachments."""
    try:
        return await service.get_file_tree(db, product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/list", response_model=list[AttachmentResponse])
async def list_files(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """List all attachments of a product, sorted by path."""
    return await service.list_files(db, product_id)


@router.get("/stats", response_model=AttachmentStatsResponse)
async def get_stats(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Get file count, total size, per-extension counts and max depth."""
    try:
        return await service.get_stats(db, product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/file", response_model=AttachmentResponse)
async def get_file_metadata(
    product_id: int,
    path: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Get a single attachment's metadata by virtual path."""
    try:
        return await service.get_file(db, product_id, _require_path(path))
    except AttachmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/download")
async def download_file(
    product_id: int,
    path: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Download an attachment under its original filename."""
    try:
        attachment = await service.locate_file(db, product_id, _require_path(path))
    except AttachmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return FileResponse(
        path=attachment.storage_path,
        filename=attachment.original_name,
        media_type=attachment.mime_type,
    )


@router.delete("")
async def delete_file(
    product_id: int,
    path: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Delete a single attachment."""
    path = _require_path(path)
    try:
        await service.delete_file(db, product_id, path)
    except AttachmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True, "path": path}


@router.delete("/folder", response_model=DeleteFolderResponse)
async def delete_folder(
    product_id: int,
    path: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Delete a folder and everything below it."""
    try:
        deleted = await service.delete_folder(db, product_id, _require_path(path))
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DeleteFolderResponse(deleted_files=deleted)


@router.post("/sync", response_model=SyncResponse)
async def sync_file_system(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Drop records whose file no longer exists on disk."""
    return await service.sync_file_system(db, product_id)


@index_router.post("/reindex", response_model=ReindexResponse)
async def reindex(
    db: AsyncSession = Depends(get_db),
    service: AttachmentService = Depends(get_attachment_service),
):
    """Rebuild the in-memory attachment index from the database."""
    loaded = await service.load_index(db)
    return ReindexResponse(loaded=loaded)
