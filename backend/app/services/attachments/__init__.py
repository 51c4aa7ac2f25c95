"""Attachment index: chained hash map + virtual file tree."""
from app.services.attachments.hash_map import HashMap
from app.services.attachments.models import AttachmentStats, FileMetadata, FileNode
from app.services.attachments.file_tree import (
    FileTree,
    AttachmentValidationError,
    PathDepthExceededError,
    MissingExtensionError,
    ExtensionNotAllowedError,
    normalize_path,
)

__all__ = [
    "HashMap",
    "AttachmentStats",
    "FileMetadata",
    "FileNode",
    "FileTree",
    "AttachmentValidationError",
    "PathDepthExceededError",
    "MissingExtensionError",
    "ExtensionNotAllowedError",
    "normalize_path",
]
