from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_

from ....core.responses import paginate, success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....models.procurement import OrderStatus, Procurement, ProcurementPriority
from ....models.purchase_order import Invoice, InvoiceStatus, PurchaseOrder
from ....schemas.procurement import (
    ProcurementBulkRequest,
    ProcurementCreate,
    ProcurementReject,
    ProcurementStatusUpdate,
    ProcurementUpdate,
)
from ....schemas.purchase_order import InvoiceCreate, PaymentCreate, PurchaseOrderCreate
from ....services import payment_service, procurement_service
from ....services.exports import csv_response, export_filename, render_csv
from ....services.policy import COST_FIELDS, Action
from ...deps import ProjectScope, project_scope

router = APIRouter()

EXPORT_COLUMNS = (
    "po_number",
    "material_item",
    "description",
    "quantity",
    "unit",
    "unit_cost",
    "total_cost",
    "order_status",
    "priority",
    "required_by",
    "supplier",
    "budget_item_id",
)


@router.get("/")
async def list_procurements(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    order_status: Optional[OrderStatus] = Query(None),
    priority: Optional[ProcurementPriority] = Query(None),
    supplier_id: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.READ)),
):
    criteria = []
    if order_status:
        criteria.append(Procurement.order_status == order_status)
    if priority:
        criteria.append(Procurement.priority == priority)
    if supplier_id:
        criteria.append(Procurement.supplier_id == supplier_id)
    rows, total = await scope.repos.procurement.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.procurement.present_many(rows), pagination=paginate(page, limit, total))


@router.post("/", status_code=201)
async def create_procurement(
    procurement_data: ProcurementCreate,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.WRITE)),
):
    async with atomic(scope.db):
        if procurement_data.supplier_id:
            await scope.repos.vendors.get(procurement_data.supplier_id)
        procurement = await scope.repos.procurement.create(procurement_data.model_dump())
        data = scope.repos.procurement.present(procurement)
    return success_response(data, message="Procurement created")


@router.get("/summary")
async def procurement_summary(
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.READ)),
):
    return success_response(await scope.repos.procurement.summary())


@router.get("/analytics")
async def procurement_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    group_by: Optional[Literal["supplier", "status", "priority", "month"]] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.READ)),
):
    analytics = await scope.repos.procurement.analytics(start_date, end_date, group_by)
    return success_response(analytics)


@router.get("/export")
async def export_procurements(
    order_status: Optional[OrderStatus] = Query(None),
    supplier_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.EXPORT)),
):
    """Download the project's procurements as CSV; cost columns follow the caller's visibility"""
    criteria = []
    if order_status:
        criteria.append(Procurement.order_status == order_status)
    if supplier_id:
        criteria.append(Procurement.supplier_id == supplier_id)
    if search:
        pattern = f"%{search}%"
        criteria.append(or_(
            Procurement.material_item.ilike(pattern),
            Procurement.description.ilike(pattern),
            Procurement.po_number.ilike(pattern),
        ))
    rows = await scope.repos.procurement.find_many(*criteria)
    vendors = {vendor.id: vendor.name for vendor in await scope.repos.vendors.find_many()}
    records = [
        {**scope.repos.procurement.present(row), "supplier": vendors.get(row.supplier_id)}
        for row in rows
    ]
    columns = [
        column for column in EXPORT_COLUMNS
        if scope.context.has_financial_visibility or column not in COST_FIELDS
    ]
    project = await scope.repos.project.get()
    return csv_response(render_csv(columns, records), export_filename("procurement", project.name))


@router.post("/bulk")
async def bulk_procurement(
    bulk_request: ProcurementBulkRequest,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.APPROVE)),
):
    """Apply one operation to many procurements; nothing is written unless every id resolves"""
    async with atomic(scope.db, "bulk procurement update"):
        result = await procurement_service.bulk_update(scope.repos, bulk_request.model_dump())
    return success_response(result, message=f"Bulk {result['operation']} applied to {result['count']} procurements")


@router.get("/purchase-orders")
async def list_purchase_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    vendor_id: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.READ)),
):
    criteria = [PurchaseOrder.vendor_id == vendor_id] if vendor_id else []
    orders, total = await scope.repos.purchase_orders.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.purchase_orders.present_many(orders), pagination=paginate(page, limit, total))


@router.post("/purchase-orders", status_code=201)
async def create_purchase_order(
    order_data: PurchaseOrderCreate,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.WRITE)),
):
    async with atomic(scope.db, "purchase order"):
        order = await procurement_service.create_purchase_order(scope.repos, order_data.model_dump())
        data = scope.repos.purchase_orders.present(order)
    return success_response(data, message="Purchase order created")


@router.get("/invoices")
async def list_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[InvoiceStatus] = Query(None),
    purchase_order_id: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.INVOICES, Action.READ)),
):
    criteria = []
    if status:
        criteria.append(Invoice.status == status)
    if purchase_order_id:
        criteria.append(Invoice.purchase_order_id == purchase_order_id)
    invoices, total = await scope.repos.invoices.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.invoices.present_many(invoices), pagination=paginate(page, limit, total))


@router.post("/invoices", status_code=201)
async def create_invoice(
    invoice_data: InvoiceCreate,
    scope: ProjectScope = Depends(project_scope(Module.INVOICES, Action.UPLOAD)),
):
    """Submit an invoice, optionally against a purchase order"""
    async with atomic(scope.db):
        if invoice_data.purchase_order_id:
            await scope.repos.purchase_orders.get(invoice_data.purchase_order_id)
        invoice = await scope.repos.invoices.create(invoice_data.model_dump())
        data = scope.repos.invoices.present(invoice)
    return success_response(data, message="Invoice created")


@router.get("/payments")
async def list_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    scope: ProjectScope = Depends(project_scope(Module.INVOICES, Action.READ)),
):
    payments, total = await scope.repos.payments.paginate(page=page, limit=limit)
    return success_response(scope.repos.payments.present_many(payments), pagination=paginate(page, limit, total))


@router.post("/payments", status_code=201)
async def create_payment(
    payment_data: PaymentCreate,
    scope: ProjectScope = Depends(project_scope(Module.INVOICES, Action.WRITE)),
):
    """Record a payment; invoice, purchase order and budget totals move together or not at all"""
    async with atomic(scope.db, "payment"):
        payment = await payment_service.record_payment(
            scope.repos,
            payment_data.invoice_id,
            payment_data.amount,
            method=payment_data.method,
            reference=payment_data.reference,
            paid_at=payment_data.paid_at,
        )
        data = scope.repos.payments.present(payment)
    return success_response(data, message="Payment recorded")


@router.get("/{procurement_id}")
async def get_procurement(
    procurement_id: str,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.READ)),
):
    return success_response(scope.repos.procurement.present(await scope.repos.procurement.get(procurement_id)))


@router.put("/{procurement_id}")
async def update_procurement(
    procurement_id: str,
    procurement_data: ProcurementUpdate,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.WRITE)),
):
    """Edit a DRAFT or QUOTED procurement"""
    changes = procurement_data.model_dump(exclude_unset=True)
    async with atomic(scope.db):
        if changes.get("supplier_id"):
            await scope.repos.vendors.get(changes["supplier_id"])
        procurement = await scope.repos.procurement.update(procurement_id, changes)
        data = scope.repos.procurement.present(procurement)
    return success_response(data, message="Procurement updated")


@router.delete("/{procurement_id}")
async def delete_procurement(
    procurement_id: str,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.DELETE)),
):
    async with atomic(scope.db):
        await scope.repos.procurement.delete(procurement_id)
    return success_response(None, message="Procurement deleted")


@router.post("/{procurement_id}/approve")
async def approve_procurement(
    procurement_id: str,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.APPROVE)),
):
    async with atomic(scope.db, "procurement approval"):
        procurement = await procurement_service.approve_procurement(scope.repos, procurement_id)
        data = scope.repos.procurement.present(procurement)
    return success_response(data, message="Procurement approved")


@router.post("/{procurement_id}/reject")
async def reject_procurement(
    procurement_id: str,
    rejection: ProcurementReject,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.APPROVE)),
):
    async with atomic(scope.db):
        procurement = await scope.repos.procurement.reject(procurement_id, rejection.reason)
        data = scope.repos.procurement.present(procurement)
    return success_response(data, message="Procurement rejected")


@router.patch("/{procurement_id}/status")
async def update_procurement_status(
    procurement_id: str,
    status_update: ProcurementStatusUpdate,
    scope: ProjectScope = Depends(project_scope(Module.PROCUREMENT, Action.APPROVE)),
):
    """Order, deliver, cancel or reopen a procurement"""
    async with atomic(scope.db, "procurement status change"):
        procurement = await procurement_service.change_status(
            scope.repos, procurement_id, status_update.order_status
        )
        data = scope.repos.procurement.present(procurement)
    return success_response(data, message=f"Status updated to {status_update.order_status.value}")
