"""In-memory attachment index.

Keeps every attachment's metadata in a HashMap keyed by
"{owner_id}:{normalized_path}", enforces the path-depth and extension
policy, and rebuilds a folder tree per owner on demand.

The index is a cache of the database. Two behaviors are kept on purpose
and covered by tests:
  * add_file silently overwrites an existing entry for the same key;
    uniqueness is enforced by the database constraint, not here.
  * delete_folder only touches memory. Callers delete rows and files
    separately, so a failure between the steps leaves drift that
    AttachmentService.load_index() / sync_file_system() repair.
"""
import dataclasses
import threading
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from app.services.attachments.hash_map import HashMap
from app.services.attachments.models import AttachmentStats, FileMetadata, FileNode

DEFAULT_MAX_DEPTH = 10
DEFAULT_ALLOWED_EXTENSIONS = (
    "jpg", "jpeg", "png", "gif", "pdf", "doc", "docx", "txt", "zip",
)


class AttachmentValidationError(ValueError):
    """Base for policy violations raised before the index is mutated."""


class PathDepthExceededError(AttachmentValidationError):
    pass


class MissingExtensionError(AttachmentValidationError):
    pass


class ExtensionNotAllowedError(AttachmentValidationError):
    pass


def split_path(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def normalize_path(path: str) -> str:
    """Strip leading/trailing separators and empty segments."""
    return "/".join(split_path(path))


def get_extension(filename: str) -> str:
    parts = filename.split(".")
    return parts[-1].lower() if len(parts) > 1 else ""


class FileTree:
    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
        capacity: int = 32,
        load_factor_threshold: float = 0.75,
    ):
        self.max_depth = max_depth
        self.allowed_extensions = frozenset(ext.lower().lstrip(".") for ext in allowed_extensions)
        self._files: HashMap[str, FileMetadata] = HashMap(capacity, load_factor_threshold)
        self._lock = threading.RLock()

    @staticmethod
    def _key(owner_id: int, path: str) -> str:
        return f"{owner_id}:{path}"

    # ── Validation ────────────────────────────────────────────────

    def validate_path(self, path: str) -> str:
        """Return the normalized path, or raise if it is deeper than max_depth."""
        normalized = normalize_path(path)
        if len(split_path(normalized)) > self.max_depth:
            raise PathDepthExceededError(
                f"Path depth exceeds maximum allowed depth of {self.max_depth}"
            )
        return normalized

    def validate_extension(self, filename: str) -> str:
        """Return the lowercased extension, or raise if missing / not allowed."""
        extension = get_extension(filename)
        if not extension:
            raise MissingExtensionError("File must have an extension")
        if extension not in self.allowed_extensions:
            allowed = ", ".join(sorted(self.allowed_extensions))
            raise ExtensionNotAllowedError(
                f"Extension .{extension} is not allowed. Allowed: {allowed}"
            )
        return extension

    # ── Single-file operations ────────────────────────────────────

    def add_file(self, metadata: FileMetadata) -> bool:
        path = self.validate_path(metadata.path)
        if not path:
            raise AttachmentValidationError("File path must not be empty")
        self.validate_extension(metadata.original_name)

        if path != metadata.path:
            metadata = dataclasses.replace(metadata, path=path)
        with self._lock:
            self._files.set(self._key(metadata.owner_id, path), metadata)
        return True

    def get_file(self, owner_id: int, path: str) -> Optional[FileMetadata]:
        with self._lock:
            return self._files.get(self._key(owner_id, normalize_path(path)))

    def delete_file(self, owner_id: int, path: str) -> bool:
        with self._lock:
            return self._files.delete(self._key(owner_id, normalize_path(path)))

    def get_files_by_owner(self, owner_id: int) -> List[FileMetadata]:
        prefix = f"{owner_id}:"
        with self._lock:
            return [value for key, value in self._files if key.startswith(prefix)]

    # ── Tree / folder operations ──────────────────────────────────

    def build_tree(self, owner_id: int) -> FileNode:
        now = datetime.now(timezone.utc)
        root = FileNode.folder("root", "/", now)
        for metadata in self.get_files_by_owner(owner_id):
            self._insert_into_tree(root, metadata)
        return root

    @staticmethod
    def _insert_into_tree(root: FileNode, metadata: FileMetadata) -> None:
        parts = split_path(metadata.path)
        current = root

        for i, folder_name in enumerate(parts[:-1]):
            folder = current.find_folder(folder_name)
            if folder is None:
                folder = FileNode.folder(
                    folder_name, "/".join(parts[: i + 1]), metadata.created_at
                )
                current.children.append(folder)
            current = folder

        current.children.append(FileNode.file(parts[-1], metadata))

    def delete_folder(self, owner_id: int, folder_path: str) -> int:
        """Remove every entry at or below folder_path. Returns the count removed."""
        folder = normalize_path(folder_path)
        deleted = 0
        with self._lock:
            for metadata in self.get_files_by_owner(owner_id):
                if metadata.path == folder or metadata.path.startswith(folder + "/"):
                    if self.delete_file(owner_id, metadata.path):
                        deleted += 1
        return deleted

    def get_stats(self, owner_id: int) -> AttachmentStats:
        stats = AttachmentStats()
        for metadata in self.get_files_by_owner(owner_id):
            stats.total_files += 1
            stats.total_size += metadata.size
            stats.files_by_extension[metadata.extension] = (
                stats.files_by_extension.get(metadata.extension, 0) + 1
            )
            stats.max_depth = max(stats.max_depth, len(split_path(metadata.path)))
        return stats

    def clear(self) -> None:
        with self._lock:
            self._files.clear()

    def __len__(self) -> int:
        return len(self._files)
