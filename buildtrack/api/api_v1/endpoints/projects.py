from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import AuthorizationError, NotFoundError
from ....core.responses import paginate, success_response
from ....db.database import get_db
from ....db.transactions import atomic
from ....models.access import Module
from ....models.audit_log import AuditLog
from ....models.project import Project
from ....models.user import SystemRole, User
from ....schemas.project import ProjectCreate, ProjectMemberCreate, ProjectResponse, ProjectUpdate
from ....services import policy
from ....services.policy import Action
from ....services.user_service import grant_project_access
from ...deps import ProjectScope, get_current_user, project_scope

router = APIRouter()


@router.get("/")
async def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    include_archived: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Projects visible to the caller"""
    project_ids = await policy.get_user_projects(db, current_user.id)
    query = select(Project).where(Project.id.in_(project_ids))
    if not include_archived:
        query = query.where(Project.is_archived.is_(False))
    result = await db.execute(query.order_by(Project.created_at.desc()))
    projects = result.scalars().all()
    total = len(projects)
    window = projects[(page - 1) * limit: page * limit]
    return success_response(
        [ProjectResponse.model_validate(project).model_dump(mode="json") for project in window],
        pagination=paginate(page, limit, total),
    )


@router.post("/", status_code=201)
async def create_project(
    project_data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a project; the creator becomes its first member"""
    try:
        await policy.assert_module_access(db, current_user.id, None, None, Action.WRITE)
    except AuthorizationError as exc:
        await policy.log_policy_decision(current_user.id, None, None, Action.WRITE, False, exc.message)
        raise
    await policy.log_policy_decision(current_user.id, None, None, Action.WRITE, True, "granted")

    async with atomic(db, "project creation"):
        project = Project(**project_data.model_dump(), owner_id=current_user.id)
        db.add(project)
        await db.flush()
        await grant_project_access(db, current_user, project.id, current_user.role, current_user.id)
        db.add(AuditLog(
            user_id=current_user.id,
            project_id=project.id,
            action="CREATE",
            entity="Project",
            entity_id=project.id,
            meta={"name": project.name},
        ))
        data = ProjectResponse.model_validate(project).model_dump(mode="json")
    return success_response(data, message="Project created")


@router.get("/{project_id}")
async def get_project(scope: ProjectScope = Depends(project_scope(Module.PROJECTS, Action.READ))):
    project = await scope.repos.project.get()
    return success_response({
        **scope.repos.project.present(project),
        "role": scope.context.role.value,
        "capabilities": {
            module.value: {
                "view": capability.view,
                "edit": capability.edit,
                "upload": capability.upload,
                "request": capability.request,
            }
            for module, capability in scope.context.capabilities.items()
        },
    })


@router.put("/{project_id}")
async def update_project(
    project_data: ProjectUpdate,
    scope: ProjectScope = Depends(project_scope(Module.PROJECTS, Action.WRITE)),
):
    async with atomic(scope.db):
        project = await scope.repos.project.update(project_data.model_dump(exclude_unset=True))
        data = scope.repos.project.present(project)
    return success_response(data, message="Project updated")


@router.post("/{project_id}/archive")
async def archive_project(
    archived: bool = Query(True),
    scope: ProjectScope = Depends(project_scope(Module.PROJECTS, Action.WRITE)),
):
    async with atomic(scope.db):
        project = await scope.repos.project.set_archived(archived)
        data = scope.repos.project.present(project)
    return success_response(data, message="Project archived" if archived else "Project restored")


@router.delete("/{project_id}")
async def delete_project(scope: ProjectScope = Depends(project_scope(Module.PROJECTS, Action.DELETE))):
    """Soft delete; only ADMIN may remove a project"""
    if scope.context.system_role != SystemRole.ADMIN:
        raise AuthorizationError("Only administrators can delete projects")
    async with atomic(scope.db):
        await scope.repos.project.soft_delete()
    return success_response(None, message="Project deleted")


@router.get("/{project_id}/members")
async def list_members(scope: ProjectScope = Depends(project_scope(Module.PROJECTS, Action.READ))):
    members = await scope.repos.members.find_many()
    return success_response(scope.repos.members.present_many(members))


@router.post("/{project_id}/members", status_code=201)
async def add_member(
    member_data: ProjectMemberCreate,
    scope: ProjectScope = Depends(project_scope(Module.PROJECTS, Action.WRITE)),
):
    async with atomic(scope.db, "membership grant"):
        user = await scope.db.get(User, member_data.user_id)
        if user is None:
            raise NotFoundError("User not found")
        await grant_project_access(scope.db, user, scope.context.project_id, member_data.role, scope.context.user_id)
        member = await scope.repos.members.find_for_user(user.id)
        data = scope.repos.members.present(member)
    return success_response(data, message="Member added")
