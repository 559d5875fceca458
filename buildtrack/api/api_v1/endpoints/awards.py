from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....core.responses import paginate, success_response
from ....models.access import Module
from ....models.rfp import Award
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.get("/")
async def list_awards(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    rfp_id: Optional[str] = Query(None),
    vendor_id: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.READ)),
):
    """Awards in the project, newest first"""
    criteria = []
    if rfp_id:
        criteria.append(Award.rfp_id == rfp_id)
    if vendor_id:
        criteria.append(Award.vendor_id == vendor_id)
    awards, total = await scope.repos.awards.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.awards.present_many(awards), pagination=paginate(page, limit, total))
