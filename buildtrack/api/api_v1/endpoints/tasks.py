from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....core.exceptions import AuthorizationError
from ....core.responses import paginate, success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....models.task import Task, TaskPriority, TaskStatus
from ....schemas.task import TaskBulkDelete, TaskCreate, TaskStatusUpdate, TaskUpdate
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.get("/")
async def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.READ)),
):
    """List tasks for the project"""
    criteria = []
    if status:
        criteria.append(Task.status == status)
    if priority:
        criteria.append(Task.priority == priority)
    if assigned_to_id:
        criteria.append(Task.assigned_to_id == assigned_to_id)
    if search:
        criteria.append(Task.title.ilike(f"%{search}%"))

    tasks, total = await scope.repos.tasks.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.tasks.present_many(tasks), pagination=paginate(page, limit, total))


@router.post("/", status_code=201)
async def create_task(
    task_data: TaskCreate,
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.WRITE)),
):
    async with atomic(scope.db):
        task = await scope.repos.tasks.create(task_data.model_dump())
        data = scope.repos.tasks.present(task)
    return success_response(data, message="Task created")


@router.post("/bulk-delete")
async def bulk_delete_tasks(
    payload: TaskBulkDelete,
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.DELETE)),
):
    """Delete all listed tasks, or none of them if any id is missing"""
    if not scope.context.is_privileged:
        raise AuthorizationError("Only ADMIN or STAFF can bulk delete tasks")
    async with atomic(scope.db, "task bulk delete"):
        count = await scope.repos.tasks.bulk_delete(payload.task_ids)
    return success_response({"deleted": count}, message=f"Deleted {count} tasks")


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.READ)),
):
    return success_response(scope.repos.tasks.present(await scope.repos.tasks.get(task_id)))


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    task_data: TaskUpdate,
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.WRITE)),
):
    changes = task_data.model_dump(exclude_unset=True)
    if scope.context.is_contractor:
        # contractors report progress but cannot reshape or reassign work
        changes = {key: value for key, value in changes.items() if key in ("status", "description")}
    async with atomic(scope.db):
        task = await scope.repos.tasks.update(task_id, changes)
        data = scope.repos.tasks.present(task)
    return success_response(data, message="Task updated")


@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate,
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.WRITE)),
):
    async with atomic(scope.db):
        task = await scope.repos.tasks.update(task_id, {"status": payload.status}, audit_action="STATUS_CHANGE")
        data = scope.repos.tasks.present(task)
    return success_response(data, message="Task status updated")


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    scope: ProjectScope = Depends(project_scope(Module.TASKS, Action.DELETE)),
):
    async with atomic(scope.db):
        await scope.repos.tasks.delete(task_id)
    return success_response(None, message="Task deleted")
