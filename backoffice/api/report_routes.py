"""
Report routes - PDF reports uploaded by admins for clients.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from backoffice.api.dependencies import get_report_service, require_roles
from backoffice.models.api import DeletedResponse, DownloadUrlResponse, ReportResponse, Role
from backoffice.models.domain import Identity
from backoffice.services.reports import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def upload_report(
    file: UploadFile = File(...),
    client_id: str = Form(..., min_length=1, max_length=64),
    title: str = Form(..., min_length=1, max_length=255),
    description: str | None = Form(None),
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    data = await file.read()
    report = await service.upload(
        client_id=client_id,
        title=title,
        file_name=file.filename,
        content_type=file.content_type,
        data=data,
        description=description,
    )
    return ReportResponse.model_validate(report)


@router.get("", response_model=list[ReportResponse])
async def list_reports(
    client_id: str | None = Query(None, description="Admin only: filter by client"),
    caller: Identity = Depends(require_roles(Role.ADMIN, Role.CLIENT)),
    service: ReportService = Depends(get_report_service),
) -> list[ReportResponse]:
    """Clients get their own reports; admins get all, optionally filtered."""
    reports = await service.list_visible(caller, client_id)
    return [ReportResponse.model_validate(r) for r in reports]


@router.get("/{report_id}/download", response_model=DownloadUrlResponse)
async def download_report(
    report_id: str,
    caller: Identity = Depends(require_roles(Role.ADMIN, Role.CLIENT)),
    service: ReportService = Depends(get_report_service),
) -> DownloadUrlResponse:
    url, file_name = await service.download_url(caller, report_id)
    return DownloadUrlResponse(url=url, file_name=file_name, expires_in=service.signed_url_ttl)


@router.delete("/{report_id}", response_model=DeletedResponse)
async def delete_report(
    report_id: str,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: ReportService = Depends(get_report_service),
) -> DeletedResponse:
    await service.delete(report_id)
    return DeletedResponse(id=report_id)
