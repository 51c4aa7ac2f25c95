"""In-memory records used by the attachment index.

FileMetadata mirrors one product_attachments row. FileNode trees are built
fresh for every query and never stored.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional


@dataclass(frozen=True)
class FileMetadata:
    original_name: str
    stored_name: str
    path: str
    size: int
    extension: str
    mime_type: str
    owner_id: int
    created_at: datetime


@dataclass
class FileNode:
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
    children: Optional[List["FileNode"]] = None

    @classmethod
    def folder(cls, name: str, path: str, timestamp: datetime) -> "FileNode":
        return cls(
            name=name,
            type="folder",
            path=path,
            created_at=timestamp,
            updated_at=timestamp,
            children=[],
        )

    @classmethod
    def file(cls, name: str, metadata: FileMetadata) -> "FileNode":
        return cls(
            name=name,
            type="file",
            path=metadata.path,
            created_at=metadata.created_at,
            updated_at=metadata.created_at,
            extension=metadata.extension,
            size=metadata.size,
            original_name=metadata.original_name,
            stored_name=metadata.stored_name,
            mime_type=metadata.mime_type,
        )

    def find_folder(self, name: str) -> Optional["FileNode"]:
        for child in self.children or []:
            if child.name == name and child.type == "folder":
                return child
        return None


@dataclass
class AttachmentStats:
    total_files: int = 0
    total_size: int = 0
    files_by_extension: Dict[str, int] = field(default_factory=dict)
    max_depth: int = 0
