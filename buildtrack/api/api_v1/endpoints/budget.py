from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....core.responses import paginate, success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....models.budget import BudgetItem, BudgetStatus
from ....schemas.budget import BudgetItemCreate, BudgetItemUpdate
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.get("/")
async def list_budget_items(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    category: Optional[str] = Query(None),
    discipline: Optional[str] = Query(None),
    status: Optional[BudgetStatus] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.READ)),
):
    """Budget lines; cost fields are removed for roles without financial visibility"""
    criteria = []
    if category:
        criteria.append(BudgetItem.category == category)
    if discipline:
        criteria.append(BudgetItem.discipline == discipline)
    if status:
        criteria.append(BudgetItem.status == status)
    items, total = await scope.repos.budget.list_items(*criteria, page=page, limit=limit)
    return success_response(items, pagination=paginate(page, limit, total))


@router.post("/", status_code=201)
async def create_budget_item(
    item_data: BudgetItemCreate,
    scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.WRITE)),
):
    async with atomic(scope.db):
        data = await scope.repos.budget.create_item(item_data.model_dump())
    return success_response(data, message="Budget item created")


@router.get("/summary")
async def budget_summary(scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.READ))):
    return success_response(await scope.repos.budget.summary())


@router.get("/exceptions")
async def budget_exceptions(scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.READ))):
    """Lines committed more than 10% over estimate, with severity"""
    return success_response(await scope.repos.budget.exceptions())


@router.get("/{item_id}")
async def get_budget_item(
    item_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.READ)),
):
    return success_response(await scope.repos.budget.get_item(item_id))


@router.put("/{item_id}")
async def update_budget_item(
    item_id: str,
    item_data: BudgetItemUpdate,
    scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.WRITE)),
):
    async with atomic(scope.db):
        data = await scope.repos.budget.update_item(item_id, item_data.model_dump(exclude_unset=True))
    return success_response(data, message="Budget item updated")


@router.delete("/{item_id}")
async def delete_budget_item(
    item_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BUDGET, Action.DELETE)),
):
    async with atomic(scope.db):
        await scope.repos.budget.delete(item_id)
    return success_response(None, message="Budget item deleted")
