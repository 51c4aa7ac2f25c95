"""Attachment response schemas (camelCase on the wire)."""
from typing import Optional, Literal
from datetime import datetime
from app.schemas.base import CamelORMModel


class AttachmentResponse(CamelORMModel):
    id: int
    product_id: int
    original_name: str
    stored_name: str
    path: str
    size: int
    extension: str
    mime_type: str
    created_at: datetime


class FileNodeResponse(CamelORMModel):
    name: str
    type: Literal["file", "folder"]
    path: str
    created_at: datetime
    updated_at: datetime
    extension: Optional[str] = None
    size: Optional[int] = None
    original_name: Optional[str] = None
    stored_name: Optional[str] = None
    mime_type: Optional[str] = None
    children: Optional[list["FileNodeResponse"]] = None


class AttachmentStatsResponse(CamelORMModel):
    total_files: int
    total_size: int
    files_by_extension: dict[str, int]
    max_depth: int


class DeleteFolderResponse(CamelORMModel):
    deleted_files: int


class SyncResponse(CamelORMModel):
    removed: int
    untracked: int


class ReindexResponse(CamelORMModel):
    loaded: int
