"""Requests for proposal: drafting, publishing, vendor invitations and bid comparison."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....core.responses import paginate, success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....models.rfp import Rfp, RfpStatus
from ....schemas.rfp import RfpCreate, RfpInviteRequest, RfpItemsUpsert, RfpUpdate
from ....services import bidding_service
from ....services.exports import csv_response, export_filename
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.get("/projects/{project_id}/rfps")
async def list_rfps(
    project_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[RfpStatus] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.READ)),
):
    criteria = [Rfp.status == status] if status else []
    rfps, total = await scope.repos.rfps.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.rfps.present_many(rfps), pagination=paginate(page, limit, total))


@router.post("/projects/{project_id}/rfps", status_code=201)
async def create_rfp(
    project_id: str,
    rfp_data: RfpCreate,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    async with atomic(scope.db):
        rfp = await scope.repos.rfps.create(rfp_data.model_dump())
        data = scope.repos.rfps.present(rfp)
    return success_response(data, message="RFP created")


@router.get("/projects/{project_id}/rfps/{rfp_id}")
async def get_rfp(
    project_id: str,
    rfp_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.READ)),
):
    rfp = await scope.repos.rfps.get(rfp_id)
    data = scope.repos.rfps.present(rfp)
    data["items"] = scope.repos.rfp_items.present_many(await scope.repos.rfp_items.for_rfp(rfp.id))
    return success_response(data)


@router.put("/projects/{project_id}/rfps/{rfp_id}")
async def update_rfp(
    project_id: str,
    rfp_id: str,
    rfp_data: RfpUpdate,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    async with atomic(scope.db):
        rfp = await scope.repos.rfps.update(rfp_id, rfp_data.model_dump(exclude_unset=True))
        data = scope.repos.rfps.present(rfp)
    return success_response(data, message="RFP updated")


@router.delete("/projects/{project_id}/rfps/{rfp_id}")
async def delete_rfp(
    project_id: str,
    rfp_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.DELETE)),
):
    async with atomic(scope.db):
        await scope.repos.rfps.delete(rfp_id)
    return success_response(None, message="RFP deleted")


@router.put("/projects/{project_id}/rfps/{rfp_id}/items")
async def upsert_rfp_items(
    project_id: str,
    rfp_id: str,
    payload: RfpItemsUpsert,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    """Create or update RFP line items in one transaction"""
    async with atomic(scope.db, "rfp item upsert"):
        rfp = await scope.repos.rfps.get_draft(rfp_id)
        items = await scope.repos.rfp_items.bulk_upsert(
            rfp.id, [item.model_dump() for item in payload.items], replace=payload.replace
        )
        data = scope.repos.rfp_items.present_many(items)
    return success_response(data, message=f"{len(data)} items saved")


@router.post("/projects/{project_id}/rfps/{rfp_id}/publish")
async def publish_rfp(
    project_id: str,
    rfp_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    async with atomic(scope.db):
        items = await scope.repos.rfp_items.for_rfp(rfp_id)
        rfp = await scope.repos.rfps.publish(rfp_id, len(items))
        data = scope.repos.rfps.present(rfp)
    return success_response(data, message="RFP published")


@router.post("/rfps/{rfp_id}/invite")
async def invite_to_rfp(
    rfp_id: str,
    invite_request: RfpInviteRequest,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    """Invite contacts to bid; each contact succeeds or fails on its own"""
    results = await bidding_service.invite_contacts(
        scope.repos, rfp_id, invite_request.contact_ids, invite_request.message
    )
    invited = sum(1 for result in results if result["status"] == "invited")
    return success_response({"results": results}, message=f"Invited {invited} of {len(results)} contacts")


@router.get("/rfps/{rfp_id}/tabulation")
async def rfp_tabulation(
    rfp_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.READ)),
):
    return success_response(await bidding_service.build_tabulation(scope.repos, rfp_id))


@router.get("/rfps/{rfp_id}/tabulation/export")
async def export_rfp_tabulation(
    rfp_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.EXPORT)),
):
    """Download the bid comparison as CSV"""
    tabulation = await bidding_service.build_tabulation(scope.repos, rfp_id)
    content = bidding_service.tabulation_csv(tabulation)
    return csv_response(content, export_filename("bid-tabulation", tabulation["title"]))


@router.get("/rfps/{rfp_id}/bids")
async def list_rfp_bids(
    rfp_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.READ)),
):
    rfp = await scope.repos.rfps.get(rfp_id)
    bids = await scope.repos.bids.for_rfp(rfp.id)
    lines = await scope.repos.bid_items.for_bids([bid.id for bid in bids])
    data = []
    for bid in bids:
        record = scope.repos.bids.present(bid)
        record["items"] = scope.repos.bid_items.present_many(line for line in lines if line.bid_id == bid.id)
        data.append(record)
    return success_response(data)
