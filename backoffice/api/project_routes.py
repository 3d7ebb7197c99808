"""
Project routes - admins manage projects, clients read their own.
"""

from fastapi import APIRouter, Depends, status

from backoffice.api.dependencies import get_project_service, require_roles
from backoffice.models.api import (
    DeletedResponse,
    ProjectCreateRequest,
    ProjectResponse,
    ProjectUpdateRequest,
    Role,
)
from backoffice.models.domain import Identity
from backoffice.services.projects import ProjectService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreateRequest,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    project = await service.create(request)
    return ProjectResponse.model_validate(project)


@router.get("/my", response_model=list[ProjectResponse])
async def list_my_projects(
    caller: Identity = Depends(require_roles(Role.CLIENT)),
    service: ProjectService = Depends(get_project_service),
) -> list[ProjectResponse]:
    projects = await service.list_for_client(caller.id)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.get("/client/{client_id}", response_model=list[ProjectResponse])
async def list_client_projects(
    client_id: str,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: ProjectService = Depends(get_project_service),
) -> list[ProjectResponse]:
    projects = await service.list_for_client(client_id)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    caller: Identity = Depends(require_roles(Role.ADMIN, Role.CLIENT)),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    project = await service.get(caller, project_id)
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    request: ProjectUpdateRequest,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    project = await service.update(project_id, request)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", response_model=DeletedResponse)
async def delete_project(
    project_id: str,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: ProjectService = Depends(get_project_service),
) -> DeletedResponse:
    await service.delete(project_id)
    return DeletedResponse(id=project_id)
