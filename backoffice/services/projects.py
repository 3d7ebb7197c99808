"""
Project Service - client projects managed by admins.
"""

from datetime import UTC, datetime

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import Project, new_id
from backoffice.exceptions import NotFoundError
from backoffice.models.api import ProjectCreateRequest, ProjectUpdateRequest
from backoffice.models.domain import Identity
from backoffice.services.authorization import assert_ownership

logger = get_logger(__name__)


class ProjectService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def create(self, request: ProjectCreateRequest) -> Project:
        now = datetime.now(UTC)
        project = await self.store.insert(
            Project(
                id=new_id(),
                client_id=request.client_id,
                name=request.name,
                description=request.description,
                status=request.status.value,
                monthly_ticket_limit=request.monthly_ticket_limit,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("project_created", project_id=project.id, client_id=project.client_id)
        return project

    async def list_for_client(self, client_id: str) -> list[Project]:
        return await self.store.query(
            Project,
            where=[("client_id", "==", client_id)],
            order_by="created_at",
            descending=True,
        )

    async def _load(self, project_id: str) -> Project:
        project = await self.store.get_by_id(Project, project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def get(self, caller: Identity, project_id: str) -> Project:
        project = await self._load(project_id)
        assert_ownership(project, caller, "Project")
        return project

    async def update(self, project_id: str, request: ProjectUpdateRequest) -> Project:
        project = await self._load(project_id)

        # An explicit null clears the ticket limit back to the default
        changes: dict[str, object] = {
            field: value
            for field, value in request.model_dump(exclude_unset=True, mode="json").items()
            if value is not None or field == "monthly_ticket_limit"
        }
        changes["updated_at"] = datetime.now(UTC)

        project = await self.store.update(project, changes)
        logger.info("project_updated", project_id=project_id, fields=sorted(changes))
        return project

    async def delete(self, project_id: str) -> None:
        project = await self._load(project_id)
        await self.store.delete(project)
        logger.info("project_deleted", project_id=project_id)
