from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import AuthorizationError
from ..models.access import Module
from ..models.budget import BudgetItem, BudgetStatus
from ..schemas.budget import BudgetItemResponse
from ..services.policy import variance_severity
from .base import ScopedRepository

ZERO_TOTALS = {"est_total": 0.0, "committed_total": 0.0, "paid_to_date": 0.0, "variance": 0.0}
NULLABLE_FIELDS = frozenset({"notes", "vendor_contact_id"})


class BudgetRepository(ScopedRepository[BudgetItem]):
    """Budget lines. Reads return redacted records, never ORM rows."""

    model = BudgetItem
    entity_name = "BudgetItem"
    response_schema = BudgetItemResponse
    redacted_module = Module.BUDGET

    def default_order(self):
        return (BudgetItem.category, BudgetItem.item)

    async def list_items(self, *criteria, page: int = 1, limit: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        rows, total = await self.paginate(*criteria, page=page, limit=limit)
        return self.present_many(rows), total

    async def get_item(self, item_id: str) -> Dict[str, Any]:
        return self.present(await self.get(item_id))

    async def create_item(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(data)
        if data.get("est_total") is None:
            data["est_total"] = (data.get("qty") or 0.0) * (data.get("est_unit_cost") or 0.0)
        return self.present(await self.create(data))

    async def update_item(self, item_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        item = await self.get(item_id)
        data = dict(data)
        if data.get("est_total") is None and ("qty" in data or "est_unit_cost" in data):
            qty = data.get("qty", item.qty) or 0.0
            unit_cost = data.get("est_unit_cost", item.est_unit_cost) or 0.0
            data["est_total"] = qty * unit_cost
        data = {key: value for key, value in data.items() if value is not None or key in NULLABLE_FIELDS}
        return self.present(await self.apply(item, data))

    async def add_commitment(self, item_id: str, amount: float, source: Optional[str] = None) -> BudgetItem:
        item = await self.get(item_id)
        changes = {"committed_total": (item.committed_total or 0.0) + amount}
        if item.status == BudgetStatus.BUDGETED:
            changes["status"] = BudgetStatus.COMMITTED
        await self.apply(item, changes, audit_action="COMMIT")
        if source:
            await self.audit("COMMIT_SOURCE", item.id, {"source": source, "amount": amount})
        return item

    async def release_commitment(self, item_id: str, amount: float, source: Optional[str] = None) -> BudgetItem:
        item = await self.get(item_id)
        committed = max((item.committed_total or 0.0) - amount, 0.0)
        changes = {"committed_total": committed}
        if item.status == BudgetStatus.COMMITTED and committed == 0.0:
            changes["status"] = BudgetStatus.BUDGETED
        await self.apply(item, changes, audit_action="RELEASE")
        if source:
            await self.audit("RELEASE_SOURCE", item.id, {"source": source, "amount": amount})
        return item

    async def add_payment(self, item_id: str, amount: float) -> BudgetItem:
        item = await self.get(item_id)
        paid = (item.paid_to_date or 0.0) + amount
        changes = {"paid_to_date": paid}
        if item.committed_total and paid >= item.committed_total:
            changes["status"] = BudgetStatus.PAID
        return await self.apply(item, changes, audit_action="PAYMENT")

    async def totals(self) -> Dict[str, float]:
        if not self.context.has_financial_visibility:
            return dict(ZERO_TOTALS)
        rows = await self.find_many()
        totals = dict(ZERO_TOTALS)
        for row in rows:
            totals["est_total"] += row.est_total or 0.0
            totals["committed_total"] += row.committed_total or 0.0
            totals["paid_to_date"] += row.paid_to_date or 0.0
        totals["variance"] = totals["committed_total"] - totals["est_total"]
        return totals

    async def summary(self) -> Dict[str, Any]:
        rows = await self.find_many()
        visible = self.context.has_financial_visibility
        categories: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"count": 0, **ZERO_TOTALS})
        for row in rows:
            bucket = categories[row.category]
            bucket["count"] += 1
            if visible:
                bucket["est_total"] += row.est_total or 0.0
                bucket["committed_total"] += row.committed_total or 0.0
                bucket["paid_to_date"] += row.paid_to_date or 0.0
                bucket["variance"] = bucket["committed_total"] - bucket["est_total"]
        return {
            "totals": await self.totals(),
            "item_count": len(rows),
            "categories": [{"category": name, **values} for name, values in sorted(categories.items())],
        }

    async def exceptions(self) -> List[Dict[str, Any]]:
        """Lines whose commitments run over the estimate, worst first"""
        if not self.context.has_financial_visibility:
            raise AuthorizationError("Budget exceptions require financial visibility")
        flagged = []
        for row in await self.find_many():
            severity = variance_severity(row.variance_percent)
            if severity:
                flagged.append({**self.present(row), "severity": severity})
        flagged.sort(key=lambda record: record["variance_percent"], reverse=True)
        return flagged
