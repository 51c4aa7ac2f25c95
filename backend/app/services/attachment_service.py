"""Product attachment service.

Coordinates the three places an attachment lives: bytes on disk
(FileStorageService), a row in product_attachments, and the in-memory
FileTree index. Disk and database are written first; the index mirrors
them afterwards. The steps are not transactional, so drift is possible
after a partial failure. load_index() and sync_file_system() are the
recovery paths.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.product import Product
from app.models.product_attachment import ProductAttachment
from app.services.attachments import AttachmentStats, FileMetadata, FileNode, FileTree
from app.services.attachments.file_tree import AttachmentValidationError
from app.services.file_storage import FileStorageService

logger = logging.getLogger(__name__)


class ProductNotFoundError(LookupError):
    pass


class AttachmentNotFoundError(LookupError):
    pass


@dataclass
class SyncResult:
    removed: int = 0
    untracked: int = 0


def sanitize_path(path: str | None) -> str:
    """Normalize a user-supplied folder path and drop '.'/'..' segments."""
    if not path:
        return ""
    return "/".join(p for p in path.strip("/").split("/") if p and p not in (".", ".."))


def to_metadata(attachment: ProductAttachment) -> FileMetadata:
    return FileMetadata(
        original_name=attachment.original_name,
        stored_name=attachment.stored_name,
        path=attachment.path,
        size=int(attachment.size),
        extension=attachment.extension,
        mime_type=attachment.mime_type,
        owner_id=attachment.product_id,
        created_at=attachment.created_at,
    )


def build_file_tree() -> FileTree:
    """FileTree configured from settings."""
    return FileTree(
        max_depth=settings.ATTACHMENT_MAX_DEPTH,
        allowed_extensions=settings.allowed_extensions,
        capacity=settings.ATTACHMENT_INDEX_CAPACITY,
        load_factor_threshold=settings.ATTACHMENT_INDEX_LOAD_FACTOR,
    )


class AttachmentService:
    def __init__(self, file_tree: FileTree, storage: FileStorageService):
        self.file_tree = file_tree
        self.storage = storage

    # ── Index lifecycle ────────────────────────────────────────────

    async def load_index(self, db: AsyncSession) -> int:
        """Rebuild the in-memory index from every attachment row."""
        self.file_tree.clear()
        result = await db.execute(select(ProductAttachment))
        loaded = 0
        for attachment in result.scalars().all():
            try:
                self.file_tree.add_file(to_metadata(attachment))
                loaded += 1
            except AttachmentValidationError as e:
                logger.error(f"Failed to add file to tree: {attachment.path} ({e})")
        logger.info(f"Attachment index loaded: {loaded} file(s)")
        return loaded

    # ── Lookups ───────────────────────────────────────────────────

    async def _require_product(self, db: AsyncSession, product_id: int) -> Product:
        product = await db.get(Product, product_id)
        if not product:
            raise ProductNotFoundError(f"Product with ID {product_id} not found")
        return product

    async def get_file(self, db: AsyncSession, product_id: int, path: str) -> ProductAttachment:
        normalized = sanitize_path(path)
        result = await db.execute(
            select(ProductAttachment).where(
                ProductAttachment.product_id == product_id,
                ProductAttachment.path == normalized,
            )
        )
        attachment = result.scalar_one_or_none()
        if not attachment:
            raise AttachmentNotFoundError(
                f"File not found at path: {normalized} for product {product_id}"
            )
        return attachment

    async def locate_file(self, db: AsyncSession, product_id: int, path: str) -> ProductAttachment:
        """Like get_file, but also require the bytes to exist on disk."""
        attachment = await self.get_file(db, product_id, path)
        if not Path(attachment.storage_path).is_file():
            raise AttachmentNotFoundError(f"File not found on disk: {attachment.path}")
        return attachment

    async def list_files(self, db: AsyncSession, product_id: int) -> list[ProductAttachment]:
        result = await db.execute(
            select(ProductAttachment)
            .where(ProductAttachment.product_id == product_id)
            .order_by(ProductAttachment.path)
        )
        return list(result.scalars().all())

    async def get_file_tree(self, db: AsyncSession, product_id: int) -> FileNode:
        await self._require_product(db, product_id)
        return self.file_tree.build_tree(product_id)

    async def get_stats(self, db: AsyncSession, product_id: int) -> AttachmentStats:
        await self._require_product(db, product_id)
        return self.file_tree.get_stats(product_id)

    # ── Mutations ─────────────────────────────────────────────────

    async def upload_file(
        self,
        db: AsyncSession,
        product_id: int,
        file_bytes: bytes,
        original_name: str,
        mime_type: str | None,
        folder: str | None = "",
    ) -> ProductAttachment:
        """Store a new attachment under `folder` with a generated filename."""
        await self._require_product(db, product_id)

        extension = self.file_tree.validate_extension(original_name)
        stored_name = f"{uuid.uuid4()}.{extension}"
        virtual_path = "/".join(p for p in (sanitize_path(folder), stored_name) if p)
        virtual_path = self.file_tree.validate_path(virtual_path)

        storage_path = await self.storage.save(product_id, virtual_path, file_bytes)

        attachment = ProductAttachment(
            product_id=product_id,
            original_name=original_name,
            stored_name=stored_name,
            path=virtual_path,
            size=len(file_bytes),
            extension=extension,
            mime_type=mime_type or "application/octet-stream",
            storage_path=storage_path,
        )
        db.add(attachment)
        await db.commit()
        await db.refresh(attachment)

        self.file_tree.add_file(to_metadata(attachment))
        logger.info(f"Uploaded {original_name} -> product {product_id}:{virtual_path}")
        return attachment

    async def delete_file(self, db: AsyncSession, product_id: int, path: str) -> None:
        attachment = await self.get_file(db, product_id, path)

        try:
            await self.storage.delete(attachment.storage_path, product_id)
        except OSError as e:
            logger.error(f"Failed to delete file from disk: {attachment.storage_path} ({e})")

        await db.delete(attachment)
        await db.commit()

        self.file_tree.delete_file(product_id, attachment.path)
        logger.info(f"Deleted product {product_id}:{attachment.path}")

    async def delete_folder(self, db: AsyncSession, product_id: int, folder_path: str) -> int:
        """Delete a folder's files from disk, database and index.

        The three steps are independent; the returned count is what the
        index removed.
        """
        await self._require_product(db, product_id)
        folder = sanitize_path(folder_path)
        result = await db.execute(
            select(ProductAttachment).where(
                ProductAttachment.product_id == product_id,
                or_(
                    ProductAttachment.path == folder,
                    ProductAttachment.path.startswith(f"{folder}/", autoescape=True),
                ),
            )
        )
        for attachment in result.scalars().all():
            try:
                await self.storage.delete(attachment.storage_path)
            except OSError as e:
                logger.error(f"Failed to delete file: {attachment.storage_path} ({e})")
            await db.delete(attachment)

        if folder:
            await self.storage.delete_tree(product_id, folder)
        await db.commit()

        deleted = self.file_tree.delete_folder(product_id, folder)
        logger.info(f"Deleted folder product {product_id}:{folder} ({deleted} file(s))")
        return deleted

    async def sync_file_system(self, db: AsyncSession, product_id: int) -> SyncResult:
        """Drop rows whose file is gone from disk; count files with no row."""
        physical = set(await self.storage.scan(product_id))
        attachments = await self.list_files(db, product_id)
        known = {a.path for a in attachments}

        result = SyncResult(untracked=len(physical - known))
        for attachment in attachments:
            if attachment.path not in physical:
                await db.delete(attachment)
                self.file_tree.delete_file(product_id, attachment.path)
                result.removed += 1
        await db.commit()

        logger.info(
            f"Synced product {product_id}: removed={result.removed}, untracked={result.untracked}"
        )
        return result

    async def purge_product(self, db: AsyncSession, product_id: int) -> int:
        """Remove every attachment of a product (rows, files, index entries).

        Does not commit; the caller commits together with its own changes.
        """
        await db.execute(
            delete(ProductAttachment).where(ProductAttachment.product_id == product_id)
        )
        await self.storage.delete_tree(product_id)

        purged = 0
        for metadata in self.file_tree.get_files_by_owner(product_id):
            if self.file_tree.delete_file(product_id, metadata.path):
                purged += 1
        return purged
