"""
File Service - client and admin uploads with storage quota enforcement.

Objects live at ``files/{owner_id}/{file_id}_{file_name}``. The quota check
and the write run under the owner's lock.
"""

from datetime import UTC, datetime
from pathlib import PurePosixPath

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import StoredFile, new_id
from backoffice.exceptions import NotFoundError, ValidationError
from backoffice.models.domain import Identity, StorageQuota
from backoffice.observability.metrics import metrics
from backoffice.services.authorization import assert_ownership
from backoffice.services.quota import KeyedLocks, StorageQuotaCalculator, storage_locks
from backoffice.services.storage import ObjectStore

logger = get_logger(__name__)

ALLOWED_FILE_TYPES = frozenset(
    {
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/webp",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "text/csv",
    }
)


def safe_file_name(file_name: str | None) -> str:
    """Strip directory components from a client-supplied file name."""
    name = PurePosixPath((file_name or "").replace("\\", "/")).name.strip()
    if not name:
        raise ValidationError("No file received")
    return name


class FileService:
    """Upload, list, download and delete files owned by a caller."""

    def __init__(
        self,
        store: DocumentStore,
        object_store: ObjectStore,
        quota: StorageQuotaCalculator,
        locks: KeyedLocks = storage_locks,
        signed_url_ttl: int = 15 * 60,
    ) -> None:
        self.store = store
        self.object_store = object_store
        self.quota = quota
        self.locks = locks
        self.signed_url_ttl = signed_url_ttl

    async def get_quota(self, caller: Identity) -> StorageQuota:
        return await self.quota.compute_quota(caller.id, caller.role)

    async def upload(
        self,
        caller: Identity,
        file_name: str | None,
        content_type: str | None,
        data: bytes,
        title: str | None = None,
        description: str | None = None,
    ) -> StoredFile:
        """
        Store an uploaded file for the caller.

        Raises:
            ValidationError: No file, or a content type outside the allow-list
            QuotaExceededError: The file does not fit in the remaining quota
        """
        name = safe_file_name(file_name)
        if content_type not in ALLOWED_FILE_TYPES:
            raise ValidationError(f"File type not allowed: {content_type}")

        size = len(data)
        async with self.locks.hold(caller.id):
            await self.quota.ensure_capacity(caller.id, caller.role, size)

            file_id = new_id()
            storage_path = f"files/{caller.id}/{file_id}_{name}"
            await self.object_store.save(storage_path, data, content_type)

            try:
                record = await self.store.insert(
                    StoredFile(
                        id=file_id,
                        owner_id=caller.id,
                        title=title or name,
                        description=description or "",
                        file_name=name,
                        storage_path=storage_path,
                        mime_type=content_type,
                        size=size,
                        created_at=datetime.now(UTC),
                    )
                )
            except Exception:
                await self._discard_object(storage_path)
                raise

        metrics.upload_size_bytes.observe(size)
        logger.info("file_uploaded", file_id=file_id, owner_id=caller.id, size=size)
        return record

    async def _discard_object(self, storage_path: str) -> None:
        """Remove an object whose record was never written."""
        try:
            await self.object_store.delete(storage_path)
        except Exception as e:
            logger.error("orphan_object_delete_failed", storage_path=storage_path, error=str(e))
            metrics.record_error(type(e).__name__, "file_upload_cleanup")
        else:
            logger.warning("orphan_object_deleted", storage_path=storage_path)

    async def list_own(self, caller: Identity) -> list[StoredFile]:
        return await self.store.query(
            StoredFile,
            where=[("owner_id", "==", caller.id)],
            order_by="created_at",
            descending=True,
        )

    async def get(self, caller: Identity, file_id: str) -> StoredFile:
        """
        Raises:
            NotFoundError: Missing, or owned by someone else
        """
        record = await self.store.get_by_id(StoredFile, file_id)
        if record is None:
            raise NotFoundError("File", file_id)
        assert_ownership(record, caller, "File")
        return record

    async def download_url(self, caller: Identity, file_id: str) -> tuple[str, str]:
        """Signed read URL and original file name."""
        record = await self.get(caller, file_id)
        url = await self.object_store.get_signed_read_url(
            record.storage_path, self.signed_url_ttl
        )
        return url, record.file_name

    async def delete(self, caller: Identity, file_id: str) -> None:
        """Delete the object and the record; a failed object delete is only logged."""
        record = await self.get(caller, file_id)
        try:
            await self.object_store.delete(record.storage_path)
        except Exception as e:
            logger.error(
                "file_object_delete_failed",
                file_id=file_id,
                storage_path=record.storage_path,
                error=str(e),
            )
            metrics.record_error(type(e).__name__, "file_delete")

        await self.store.delete(record)
        logger.info("file_deleted", file_id=file_id, owner_id=record.owner_id)
