from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select, union_all
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError
from ..models.access import Module
from ..models.base import utcnow
from ..models.procurement import OrderStatus, Procurement
from ..models.purchase_order import Invoice, Payment, PurchaseOrder
from ..schemas.procurement import ProcurementResponse
from ..schemas.purchase_order import InvoiceResponse, PaymentResponse, PurchaseOrderResponse
from .base import ScopedRepository


async def next_po_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """Next ``PO-YYYYMM-####`` number; the sequence restarts every month"""
    prefix = f"PO-{(now or utcnow()):%Y%m}-"
    numbers = union_all(
        select(Procurement.po_number.label("po_number")).where(Procurement.po_number.like(f"{prefix}%")),
        select(PurchaseOrder.po_number.label("po_number")).where(PurchaseOrder.po_number.like(f"{prefix}%")),
    ).subquery()
    result = await db.execute(select(func.max(numbers.c.po_number)))
    latest = result.scalar()
    sequence = int(latest[len(prefix):]) + 1 if latest else 1
    return f"{prefix}{sequence:04d}"


EDITABLE_STATUSES = (OrderStatus.DRAFT, OrderStatus.QUOTED)

# Statuses holding a budget commitment
COMMITTED_STATUSES = (OrderStatus.APPROVED, OrderStatus.ORDERED, OrderStatus.DELIVERED)

# APPROVED is reached only through approve
STATUS_TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.QUOTED, OrderStatus.CANCELLED},
    OrderStatus.QUOTED: {OrderStatus.DRAFT, OrderStatus.CANCELLED},
    OrderStatus.APPROVED: {OrderStatus.ORDERED, OrderStatus.CANCELLED},
    OrderStatus.ORDERED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: {OrderStatus.DRAFT},
}


class ProcurementRepository(ScopedRepository[Procurement]):
    model = Procurement
    entity_name = "Procurement"
    response_schema = ProcurementResponse
    redacted_module = Module.PROCUREMENT
    protected_fields = ScopedRepository.protected_fields | {
        "po_number", "approved_by_id", "approved_at", "rejection_reason", "total_cost",
    }

    async def create(self, data: Dict[str, Any]) -> Procurement:
        data = dict(data)
        if data.get("order_status") not in (None, *EDITABLE_STATUSES):
            raise ConflictError("New procurements start as DRAFT or QUOTED", code="INVALID_STATUS")
        instance = await super().create(data)
        instance.total_cost = (instance.quantity or 0.0) * (instance.unit_cost or 0.0)
        await self.db.flush()
        return instance

    async def update(self, entity_id: str, data: Dict[str, Any], audit_action: str = "UPDATE") -> Procurement:
        instance = await self.get(entity_id)
        if instance.order_status not in EDITABLE_STATUSES:
            raise ConflictError(
                f"Cannot edit a procurement that is {instance.order_status.value}", code="INVALID_STATUS"
            )
        if data.get("order_status") not in (None, *EDITABLE_STATUSES):
            raise ConflictError(
                "Approval, ordering and cancellation go through their own operations", code="INVALID_STATUS"
            )
        instance = await self.apply(instance, data, audit_action)
        instance.total_cost = (instance.quantity or 0.0) * (instance.unit_cost or 0.0)
        await self.db.flush()
        return instance

    def ensure_deletable(self, instance: Procurement) -> None:
        if instance.order_status != OrderStatus.DRAFT:
            raise ConflictError(
                f"Only draft procurements can be deleted; {instance.id} is {instance.order_status.value}",
                code="INVALID_STATUS",
            )

    async def approve(self, entity_id: str) -> Procurement:
        instance = await self.get(entity_id)
        if instance.order_status != OrderStatus.QUOTED:
            raise ConflictError("Only quoted procurements can be approved", code="INVALID_STATUS")
        instance.order_status = OrderStatus.APPROVED
        instance.approved_by_id = self.context.user_id
        instance.approved_at = utcnow()
        instance.po_number = instance.po_number or await next_po_number(self.db)
        await self.db.flush()
        await self.audit("APPROVE", instance.id, {"po_number": instance.po_number})
        return instance

    async def reject(self, entity_id: str, reason: str) -> Procurement:
        """Send a quote back to DRAFT with the reason so it can be revised"""
        instance = await self.get(entity_id)
        if instance.order_status != OrderStatus.QUOTED:
            raise ConflictError("Only quoted procurements can be rejected", code="INVALID_STATUS")
        instance.order_status = OrderStatus.DRAFT
        instance.rejection_reason = reason
        await self.db.flush()
        await self.audit("REJECT", instance.id, {"reason": reason})
        return instance

    async def transition(self, entity_id: str, status: OrderStatus) -> Procurement:
        status = OrderStatus(status)
        instance = await self.get(entity_id)
        previous = instance.order_status
        if status not in STATUS_TRANSITIONS[previous]:
            raise ConflictError(
                f"Cannot move a procurement from {previous.value} to {status.value}", code="INVALID_TRANSITION"
            )
        instance.order_status = status
        await self.db.flush()
        await self.audit("STATUS_UPDATE", instance.id, {"from": previous.value, "to": status.value})
        return instance

    async def summary(self) -> Dict[str, Any]:
        rows = await self.find_many()
        by_status = {status.value: 0 for status in OrderStatus}
        for row in rows:
            by_status[row.order_status.value] += 1
        summary: Dict[str, Any] = {"count": len(rows), "by_status": by_status}
        if self.context.has_financial_visibility:
            summary["total_cost"] = sum(row.total_cost or 0.0 for row in rows)
            summary["approved_cost"] = sum(
                row.total_cost or 0.0 for row in rows if row.order_status in COMMITTED_STATUSES
            )
        return summary

    async def analytics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        group_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Counts by status and priority, cost totals for roles that may see them, optional grouping"""
        criteria = []
        if start is not None:
            criteria.append(Procurement.created_at >= start)
        if end is not None:
            criteria.append(Procurement.created_at <= end)
        rows = await self.find_many(*criteria, order_by=(Procurement.created_at,))
        visible = self.context.has_financial_visibility

        summary: Dict[str, Any] = {"total_items": len(rows)}
        if visible:
            total_cost = sum(row.total_cost or 0.0 for row in rows)
            summary["total_cost"] = total_cost
            summary["avg_cost"] = total_cost / len(rows) if rows else 0.0
            summary["committed_cost"] = sum(
                row.total_cost or 0.0 for row in rows if row.order_status in COMMITTED_STATUSES
            )

        result: Dict[str, Any] = {
            "summary": summary,
            "status_breakdown": dict(Counter(row.order_status.value for row in rows)),
            "priority_breakdown": dict(Counter(row.priority.value for row in rows)),
        }
        if group_by:
            keys = {
                "supplier": lambda row: row.supplier_id,
                "status": lambda row: row.order_status.value,
                "priority": lambda row: row.priority.value,
                "month": lambda row: f"{row.created_at:%Y-%m}",
            }[group_by]
            groups: Dict[Any, Dict[str, Any]] = {}
            for row in rows:
                key = keys(row)
                bucket = groups.setdefault(key, {"key": key, "count": 0, "total_cost": 0.0})
                bucket["count"] += 1
                bucket["total_cost"] += row.total_cost or 0.0
            grouped = sorted(groups.values(), key=lambda bucket: str(bucket["key"] or ""))
            if not visible:
                grouped = [{"key": bucket["key"], "count": bucket["count"]} for bucket in grouped]
            result["grouped"] = grouped
        return result


class PurchaseOrderRepository(ScopedRepository[PurchaseOrder]):
    model = PurchaseOrder
    entity_name = "PurchaseOrder"
    response_schema = PurchaseOrderResponse
    redacted_module = Module.PROCUREMENT
    protected_fields = ScopedRepository.protected_fields | {"paid_amount"}

    async def create(self, data: Dict[str, Any]) -> PurchaseOrder:
        data = dict(data)
        data["po_number"] = data.get("po_number") or await next_po_number(self.db)
        return await super().create(data)


class InvoiceRepository(ScopedRepository[Invoice]):
    model = Invoice
    entity_name = "Invoice"
    response_schema = InvoiceResponse
    protected_fields = ScopedRepository.protected_fields | {"paid_amount"}


class PaymentRepository(ScopedRepository[Payment]):
    model = Payment
    entity_name = "Payment"
    response_schema = PaymentResponse
