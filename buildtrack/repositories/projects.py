from typing import Any, Dict, List, Optional

from sqlalchemy import select

from ..core.exceptions import NotFoundError
from ..models.access import Module, UserModuleAccess
from ..models.audit_log import AuditLog
from ..models.base import utcnow
from ..models.project import Project, ProjectMember
from ..models.user import SystemRole, User
from ..schemas.project import ProjectMemberResponse, ProjectResponse
from ..schemas.user import ModuleAccessEntry
from ..services.policy import default_capabilities
from .base import ScopedRepository


class ProjectRepository:
    """The context's own project row"""

    entity_name = "Project"

    def __init__(self, db, context):
        self.db = db
        self.context = context

    async def get(self) -> Project:
        result = await self.db.execute(
            select(Project).where(Project.id == self.context.project_id, Project.deleted_at.is_(None))
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def update(self, data: Dict[str, Any]) -> Project:
        project = await self.get()
        for key, value in data.items():
            if key not in ("id", "owner_id", "deleted_at", "created_at", "updated_at"):
                setattr(project, key, value)
        await self.db.flush()
        await self._audit("UPDATE", {"fields": sorted(data)})
        return project

    async def set_archived(self, archived: bool) -> Project:
        project = await self.get()
        project.is_archived = archived
        await self.db.flush()
        await self._audit("ARCHIVE" if archived else "UNARCHIVE")
        return project

    async def soft_delete(self) -> Project:
        project = await self.get()
        project.deleted_at = utcnow()
        await self.db.flush()
        await self._audit("DELETE")
        return project

    def present(self, project: Project) -> Dict[str, Any]:
        return ProjectResponse.model_validate(project).model_dump(mode="json")

    async def _audit(self, action: str, meta: Optional[Dict[str, Any]] = None) -> None:
        self.db.add(AuditLog(
            user_id=self.context.user_id,
            project_id=self.context.project_id,
            action=action,
            entity=self.entity_name,
            entity_id=self.context.project_id,
            meta=meta or {},
        ))


class ProjectMemberRepository(ScopedRepository[ProjectMember]):
    model = ProjectMember
    entity_name = "ProjectMember"
    response_schema = ProjectMemberResponse

    async def find_for_user(self, user_id: str) -> Optional[ProjectMember]:
        rows = await self.find_many(ProjectMember.user_id == user_id, limit=1)
        return rows[0] if rows else None

    async def add_member(self, user: User, role: SystemRole) -> ProjectMember:
        """Create or reactivate a membership"""
        member = await self.find_for_user(user.id)
        if member is None:
            return await self.create({"user_id": user.id, "role": role, "is_active": True})
        return await self.apply(member, {"role": role, "is_active": True})


class ModuleAccessRepository(ScopedRepository[UserModuleAccess]):
    model = UserModuleAccess
    entity_name = "UserModuleAccess"
    response_schema = ModuleAccessEntry

    def default_order(self):
        return (UserModuleAccess.module,)

    async def for_user(self, user_id: str) -> List[UserModuleAccess]:
        return await self.find_many(UserModuleAccess.user_id == user_id)

    async def set_access(self, user_id: str, entries: List[Dict[str, Any]]) -> List[UserModuleAccess]:
        """Upsert one row per module listed in ``entries``"""
        current = {row.module: row for row in await self.for_user(user_id)}
        for entry in entries:
            entry = dict(entry)
            module = Module(entry.pop("module"))
            row = current.get(module)
            if row is None:
                await self.create({"user_id": user_id, "module": module, **entry})
            else:
                await self.apply(row, entry)
        return await self.for_user(user_id)

    @staticmethod
    def _role_entries(role: SystemRole) -> List[Dict[str, Any]]:
        return [
            {
                "module": module,
                "can_view": capability.view,
                "can_edit": capability.edit,
                "can_upload": capability.upload,
                "can_request": capability.request,
            }
            for module, capability in default_capabilities(role).items()
        ]

    async def seed_defaults(self, user_id: str, role: SystemRole) -> List[UserModuleAccess]:
        """Grant the role's default capabilities for every module the user has no row for"""
        existing = {row.module for row in await self.for_user(user_id)}
        entries = [entry for entry in self._role_entries(role) if entry["module"] not in existing]
        return await self.set_access(user_id, entries)

    async def reset_defaults(self, user_id: str, role: SystemRole) -> List[UserModuleAccess]:
        """Overwrite every module row with the role's defaults"""
        return await self.set_access(user_id, self._role_entries(role))

    async def replace_access(self, user_id: str, entries: List[Dict[str, Any]]) -> List[UserModuleAccess]:
        """Set the listed modules as given and clear every flag on the rest"""
        listed = {Module(entry["module"]): dict(entry) for entry in entries}
        full = [
            listed.get(module, {
                "module": module,
                "can_view": False,
                "can_edit": False,
                "can_upload": False,
                "can_request": False,
            })
            for module in Module
        ]
        return await self.set_access(user_id, full)
