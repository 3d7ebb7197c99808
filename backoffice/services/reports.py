"""
Report Service - PDF reports uploaded by an admin for a client.
"""

from datetime import UTC, datetime

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import Report, new_id
from backoffice.exceptions import NotFoundError, ValidationError
from backoffice.models.domain import Identity
from backoffice.services.authorization import assert_ownership
from backoffice.services.files import safe_file_name
from backoffice.services.storage import ObjectStore

logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class ReportService:
    """Upload, list, download and delete client reports."""

    def __init__(
        self, store: DocumentStore, object_store: ObjectStore, signed_url_ttl: int = 15 * 60
    ) -> None:
        self.store = store
        self.object_store = object_store
        self.signed_url_ttl = signed_url_ttl

    async def upload(
        self,
        client_id: str,
        title: str,
        file_name: str | None,
        content_type: str | None,
        data: bytes,
        description: str | None = None,
    ) -> Report:
        """
        Raises:
            ValidationError: Missing file or not a PDF
        """
        name = safe_file_name(file_name)
        if content_type != PDF_CONTENT_TYPE:
            raise ValidationError("Report must be a valid PDF")

        report_id = new_id()
        storage_path = f"reports/{client_id}/{report_id}_{name}"
        await self.object_store.save(storage_path, data, PDF_CONTENT_TYPE)

        report = await self.store.insert(
            Report(
                id=report_id,
                client_id=client_id,
                title=title,
                description=description or "",
                file_name=name,
                storage_path=storage_path,
                mime_type=PDF_CONTENT_TYPE,
                size=len(data),
                created_at=datetime.now(UTC),
            )
        )
        logger.info("report_uploaded", report_id=report_id, client_id=client_id, size=len(data))
        return report

    async def list_for_client(self, client_id: str) -> list[Report]:
        return await self.store.query(
            Report,
            where=[("client_id", "==", client_id)],
            order_by="created_at",
            descending=True,
        )

    async def list_all(self) -> list[Report]:
        return await self.store.query(Report, order_by="created_at", descending=True)

    async def list_visible(self, caller: Identity, client_id: str | None = None) -> list[Report]:
        """Clients see their own reports; admins see all, optionally filtered."""
        if not caller.is_admin:
            return await self.list_for_client(caller.id)
        if client_id:
            return await self.list_for_client(client_id)
        return await self.list_all()

    async def get(self, caller: Identity, report_id: str) -> Report:
        report = await self.store.get_by_id(Report, report_id)
        if report is None:
            raise NotFoundError("Report", report_id)
        assert_ownership(report, caller, "Report")
        return report

    async def download_url(self, caller: Identity, report_id: str) -> tuple[str, str]:
        report = await self.get(caller, report_id)
        url = await self.object_store.get_signed_read_url(
            report.storage_path, self.signed_url_ttl
        )
        return url, report.file_name

    async def delete(self, report_id: str) -> None:
        report = await self.store.get_by_id(Report, report_id)
        if report is None:
            raise NotFoundError("Report", report_id)

        try:
            await self.object_store.delete(report.storage_path)
        except Exception as e:
            logger.error(
                "report_object_delete_failed",
                report_id=report_id,
                storage_path=report.storage_path,
                error=str(e),
            )

        await self.store.delete(report)
        logger.info("report_deleted", report_id=report_id, client_id=report.client_id)
