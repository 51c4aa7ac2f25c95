"""Local disk storage for attachment bytes.

Layout: {FILE_STORAGE_PATH}/{product_id}/{virtual_path}
"""
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

import aiofiles

from app.config import settings

logger = logging.getLogger(__name__)


class FileStorageService:
    """Handles attachment read/write on the local filesystem."""

    def __init__(self, base_path: Optional[str | Path] = None):
        self.base_path = Path(base_path or settings.FILE_STORAGE_PATH).absolute()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def product_dir(self, product_id: int) -> Path:
        return self.base_path / str(product_id)

    def physical_path(self, product_id: int, virtual_path: str) -> Path:
        """Map a virtual path to its location on disk."""
        return self.product_dir(product_id) / virtual_path.strip("/")

    async def save(self, product_id: int, virtual_path: str, file_bytes: bytes) -> str:
        """Write file bytes. Returns the absolute storage path."""
        file_path = self.physical_path(product_id, virtual_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(file_bytes)
        return str(file_path)

    async def delete(self, storage_path: str, product_id: Optional[int] = None) -> bool:
        """Delete a file. With product_id, also prune empty parent folders."""
        path = Path(storage_path)
        if not path.exists():
            return False
        os.remove(path)
        if product_id is not None:
            self._cleanup_empty_dirs(path.parent, self.product_dir(product_id))
        return True

    def _cleanup_empty_dirs(self, directory: Path, stop_at: Path) -> None:
        # Walk up towards the product dir, removing folders left empty.
        while directory != stop_at and stop_at in directory.parents:
            try:
                if any(directory.iterdir()):
                    break
                directory.rmdir()
            except OSError as e:
                logger.warning(f"Could not prune directory {directory}: {e}")
                break
            directory = directory.parent

    async def delete_tree(self, product_id: int, folder_path: str = "") -> None:
        """Recursively remove a folder (or the whole product dir when folder_path is empty)."""
        target = self.physical_path(product_id, folder_path) if folder_path else self.product_dir(product_id)
        shutil.rmtree(target, ignore_errors=True)

    async def scan(self, product_id: int) -> list[str]:
        """List every file under a product dir as '/'-joined relative paths."""
        root = self.product_dir(product_id)
        if not root.is_dir():
            return []
        return sorted(
            p.relative_to(root).as_posix()
            for p in root.rglob("*")
            if p.is_file()
        )
