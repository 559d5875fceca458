from fastapi import APIRouter, Depends

from ....core.responses import success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....schemas.rfp import AwardRequest, BidItemsUpdate
from ....services import bidding_service
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.put("/{bid_id}")
async def update_bid(
    bid_id: str,
    payload: BidItemsUpdate,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    """Replace a draft bid's priced line items"""
    async with atomic(scope.db):
        bid = await bidding_service.update_bid_items(
            scope.repos, bid_id, [item.model_dump() for item in payload.items], payload.notes
        )
        data = scope.repos.bids.present(bid)
    return success_response(data, message="Bid updated")


@router.post("/{bid_id}/submit")
async def submit_bid(
    bid_id: str,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.WRITE)),
):
    async with atomic(scope.db):
        bid = await bidding_service.submit_bid(scope.repos, bid_id)
        data = scope.repos.bids.present(bid)
    return success_response(data, message="Bid submitted")


@router.post("/{bid_id}/award")
async def award_bid(
    bid_id: str,
    award_request: AwardRequest,
    scope: ProjectScope = Depends(project_scope(Module.BIDDING, Action.APPROVE)),
):
    """Award the RFP to this bid; the award, bid status, RFP closure and budget commitment land together"""
    async with atomic(scope.db, "bid award"):
        award = await bidding_service.award_bid(
            scope.repos, bid_id, budget_item_id=award_request.budget_item_id, notes=award_request.notes
        )
        data = scope.repos.awards.present(award)
    return success_response(data, message="Bid awarded")
