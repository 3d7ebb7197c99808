"""
File routes - per-user file storage with a storage quota.

Auth: admin or client. Every file operation is limited to the caller's own
files; admins can reach any file by id.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from backoffice.api.dependencies import get_file_service, require_roles
from backoffice.models.api import (
    DeletedResponse,
    DownloadUrlResponse,
    FileResponse,
    Role,
    StorageQuotaResponse,
)
from backoffice.models.domain import Identity
from backoffice.services.files import FileService

router = APIRouter(prefix="/files", tags=["files"])

member = require_roles(Role.ADMIN, Role.CLIENT)


@router.post("", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    title: str | None = Form(None, max_length=255),
    description: str | None = Form(None),
    caller: Identity = Depends(member),
    service: FileService = Depends(get_file_service),
) -> FileResponse:
    """
    Upload a file.

    The storage quota is checked under a per-user lock, so concurrent
    uploads by the same user cannot together exceed it.
    """
    data = await file.read()
    record = await service.upload(
        caller,
        file_name=file.filename,
        content_type=file.content_type,
        data=data,
        title=title,
        description=description,
    )
    return FileResponse.model_validate(record)


@router.get("", response_model=list[FileResponse])
async def list_files(
    caller: Identity = Depends(member),
    service: FileService = Depends(get_file_service),
) -> list[FileResponse]:
    records = await service.list_own(caller)
    return [FileResponse.model_validate(r) for r in records]


@router.get("/storage/quota", response_model=StorageQuotaResponse)
async def get_storage_quota(
    caller: Identity = Depends(member),
    service: FileService = Depends(get_file_service),
) -> StorageQuotaResponse:
    quota = await service.get_quota(caller)
    return StorageQuotaResponse(
        used=quota.used,
        limit=quota.limit,
        remaining=quota.remaining,
        used_formatted=quota.used_formatted,
        limit_formatted=quota.limit_formatted,
    )


@router.get("/{file_id}/download", response_model=DownloadUrlResponse)
async def download_file(
    file_id: str,
    caller: Identity = Depends(member),
    service: FileService = Depends(get_file_service),
) -> DownloadUrlResponse:
    url, file_name = await service.download_url(caller, file_id)
    return DownloadUrlResponse(url=url, file_name=file_name, expires_in=service.signed_url_ttl)


@router.delete("/{file_id}", response_model=DeletedResponse)
async def delete_file(
    file_id: str,
    caller: Identity = Depends(member),
    service: FileService = Depends(get_file_service),
) -> DeletedResponse:
    await service.delete(caller, file_id)
    return DeletedResponse(id=file_id)
