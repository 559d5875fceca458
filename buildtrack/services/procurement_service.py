import logging
from typing import Any, Dict, List

from ..core.exceptions import NotFoundError, ValidationError
from ..models.procurement import OrderStatus, Procurement
from ..models.purchase_order import PurchaseOrder
from ..repositories import Repositories
from ..repositories.procurement import COMMITTED_STATUSES

logger = logging.getLogger(__name__)


async def approve_procurement(repos: Repositories, procurement_id: str) -> Procurement:
    """Approve a quoted procurement and commit its cost against the budget line"""
    procurement = await repos.procurement.approve(procurement_id)
    if procurement.budget_item_id:
        await repos.budget.add_commitment(
            procurement.budget_item_id, procurement.total_cost, source=f"procurement:{procurement.id}"
        )
    return procurement


async def change_status(repos: Repositories, procurement_id: str, status: OrderStatus) -> Procurement:
    """Move a procurement along its lifecycle; cancelling a committed one releases its budget commitment"""
    status = OrderStatus(status)
    procurement = await repos.procurement.get(procurement_id)
    previous = procurement.order_status
    procurement = await repos.procurement.transition(procurement_id, status)
    if status == OrderStatus.CANCELLED and previous in COMMITTED_STATUSES and procurement.budget_item_id:
        await repos.budget.release_commitment(
            procurement.budget_item_id, procurement.total_cost, source=f"procurement:{procurement.id}"
        )
    return procurement


async def bulk_update(repos: Repositories, request: Dict[str, Any]) -> Dict[str, Any]:
    """Apply one operation to many procurements; callers make it all-or-nothing"""
    operation = request["operation"]
    ids: List[str] = list(dict.fromkeys(request["ids"]))

    if operation == "delete":
        count = await repos.procurement.delete_many(ids, not_found_code="PROCUREMENTS_NOT_FOUND")
        return {"operation": operation, "count": count}

    updates: Dict[str, Any] = {}
    if operation == "update_status":
        if request.get("order_status") is None:
            raise ValidationError("order_status is required for update_status")
        updates["order_status"] = request["order_status"]
    elif operation == "assign_supplier":
        if not request.get("supplier_id"):
            raise ValidationError("supplier_id is required for assign_supplier")
        await repos.vendors.get(request["supplier_id"])
        updates["supplier_id"] = request["supplier_id"]
    elif operation == "update_priority":
        if request.get("priority") is None:
            raise ValidationError("priority is required for update_priority")
        updates["priority"] = request["priority"]
    elif operation == "reject" and not request.get("reason"):
        raise ValidationError("reason is required for reject")

    # resolve every id first so a missing one aborts before any write
    rows = await repos.procurement.find_many(Procurement.id.in_(ids), order_by=())
    found = {row.id for row in rows}
    missing = [procurement_id for procurement_id in ids if procurement_id not in found]
    if missing:
        raise NotFoundError(
            f"Procurement records not found: {', '.join(missing)}",
            code="PROCUREMENTS_NOT_FOUND",
            details={"missing_ids": missing},
        )

    for procurement_id in ids:
        if operation == "approve":
            await approve_procurement(repos, procurement_id)
        elif operation == "reject":
            await repos.procurement.reject(procurement_id, request["reason"])
        elif operation == "update_status":
            await change_status(repos, procurement_id, request["order_status"])
        else:
            await repos.procurement.update(procurement_id, updates, audit_action="BULK_UPDATE")

    logger.info(f"Bulk {operation} on {len(ids)} procurements in project {repos.context.project_id}")
    return {"operation": operation, "count": len(ids)}


async def create_purchase_order(repos: Repositories, data: Dict[str, Any]) -> PurchaseOrder:
    """Issue a purchase order; a linked budget line takes the commitment"""
    await repos.vendors.get(data["vendor_id"])
    if data.get("procurement_id"):
        procurement = await repos.procurement.get(data["procurement_id"])
        data = {**data, "po_number": data.get("po_number") or procurement.po_number}
    order = await repos.purchase_orders.create(data)
    if order.budget_item_id:
        await repos.budget.add_commitment(order.budget_item_id, order.total, source=f"purchase_order:{order.id}")
    return order
