import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.base import utcnow
from ..models.rfp import (
    Award, Bid, BidInvitation, BidItem, BidStatus, InvitationStatus, Rfp, RfpItem, RfpStatus,
)
from ..schemas.rfp import (
    AwardResponse, BidInvitationResponse, BidItemResponse, BidResponse, RfpItemResponse, RfpResponse,
)
from .base import ScopedRepository


def _as_aware(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=utcnow().tzinfo)
    return value


class RfpRepository(ScopedRepository[Rfp]):
    model = Rfp
    entity_name = "Rfp"
    response_schema = RfpResponse
    protected_fields = ScopedRepository.protected_fields | {"status", "published_at", "created_by_id"}

    async def create(self, data: Dict[str, Any]) -> Rfp:
        data = dict(data)
        data["created_by_id"] = self.context.user_id
        return await super().create(data)

    async def get_draft(self, rfp_id: str) -> Rfp:
        rfp = await self.get(rfp_id)
        if rfp.status != RfpStatus.DRAFT:
            raise ConflictError("Only draft RFPs can be modified", code="RFP_NOT_DRAFT")
        return rfp

    async def update(self, entity_id: str, data: Dict[str, Any], audit_action: str = "UPDATE") -> Rfp:
        rfp = await self.get_draft(entity_id)
        return await self.apply(rfp, data, audit_action)

    async def delete(self, entity_id: str) -> None:
        rfp = await self.get_draft(entity_id)
        for item in await RfpItemRepository(self.db, self.context).for_rfp(rfp.id):
            await self.db.delete(item)
        await self.db.delete(rfp)
        await self.db.flush()
        await self.audit("DELETE", entity_id)

    async def publish(self, rfp_id: str, item_count: int) -> Rfp:
        rfp = await self.get_draft(rfp_id)
        if item_count < 1:
            raise ValidationError("An RFP needs at least one item before it can be published")
        if rfp.due_at is None or _as_aware(rfp.due_at) <= utcnow():
            raise ValidationError("An RFP needs a due date in the future before it can be published")
        return await self.apply(
            rfp, {"status": RfpStatus.PUBLISHED, "published_at": utcnow()}, audit_action="PUBLISH", trusted=True
        )

    async def close(self, rfp: Rfp) -> Rfp:
        return await self.apply(rfp, {"status": RfpStatus.CLOSED}, audit_action="CLOSE", trusted=True)


class RfpItemRepository(ScopedRepository[RfpItem]):
    model = RfpItem
    entity_name = "RfpItem"
    response_schema = RfpItemResponse

    def default_order(self):
        return (RfpItem.sort_order, RfpItem.created_at)

    async def for_rfp(self, rfp_id: str) -> List[RfpItem]:
        return await self.find_many(RfpItem.rfp_id == rfp_id)

    async def bulk_upsert(self, rfp_id: str, items: Sequence[Dict[str, Any]], replace: bool = False) -> List[RfpItem]:
        """Create or update the RFP's items; with ``replace`` drop the ones not listed"""
        existing = {item.id: item for item in await self.for_rfp(rfp_id)}
        kept = set()
        for position, entry in enumerate(items):
            entry = dict(entry)
            item_id = entry.pop("id", None)
            if entry.get("sort_order") is None:
                entry["sort_order"] = position
            if item_id:
                item = existing.get(item_id)
                if item is None:
                    raise NotFoundError(f"RfpItem {item_id} not found", details={"missing_ids": [item_id]})
                await self.apply(item, entry)
                kept.add(item_id)
            else:
                entry["rfp_id"] = rfp_id
                created = await self.create(entry)
                kept.add(created.id)
        if replace:
            for item_id, item in existing.items():
                if item_id not in kept:
                    await self.db.delete(item)
                    await self.audit("DELETE", item_id)
            await self.db.flush()
        return await self.for_rfp(rfp_id)


class BidInvitationRepository(ScopedRepository[BidInvitation]):
    model = BidInvitation
    entity_name = "BidInvitation"
    response_schema = BidInvitationResponse

    async def find_for_vendor(self, rfp_id: str, vendor_id: str) -> Optional[BidInvitation]:
        rows = await self.find_many(BidInvitation.rfp_id == rfp_id, BidInvitation.vendor_id == vendor_id, limit=1)
        return rows[0] if rows else None

    async def invite(self, rfp_id: str, vendor_id: str, contact_id: Optional[str], expiry_days: int) -> BidInvitation:
        return await self.create({
            "rfp_id": rfp_id,
            "vendor_id": vendor_id,
            "contact_id": contact_id,
            "token": secrets.token_urlsafe(32),
            "status": InvitationStatus.SENT,
            "expires_at": utcnow() + timedelta(days=expiry_days),
        })


class BidRepository(ScopedRepository[Bid]):
    model = Bid
    entity_name = "Bid"
    response_schema = BidResponse
    protected_fields = ScopedRepository.protected_fields | {"status", "total", "submitted_at"}

    async def for_rfp(self, rfp_id: str) -> List[Bid]:
        return await self.find_many(Bid.rfp_id == rfp_id)

    async def find_for_vendor(self, rfp_id: str, vendor_id: str) -> Optional[Bid]:
        rows = await self.find_many(Bid.rfp_id == rfp_id, Bid.vendor_id == vendor_id, limit=1)
        return rows[0] if rows else None

    async def get_or_create_draft(self, rfp_id: str, vendor_id: str) -> Bid:
        bid = await self.find_for_vendor(rfp_id, vendor_id)
        if bid is None:
            bid = await self.create({"rfp_id": rfp_id, "vendor_id": vendor_id})
        return bid


class BidItemRepository(ScopedRepository[BidItem]):
    model = BidItem
    entity_name = "BidItem"
    response_schema = BidItemResponse

    def default_order(self):
        return (BidItem.created_at,)

    async def for_bids(self, bid_ids: Sequence[str]) -> List[BidItem]:
        if not bid_ids:
            return []
        return await self.find_many(BidItem.bid_id.in_(list(bid_ids)))

    async def replace_for_bid(self, bid: Bid, entries: Sequence[Dict[str, Any]], rfp_items: Dict[str, RfpItem]) -> float:
        """Replace a draft bid's line items and return the new bid total"""
        if bid.status != BidStatus.DRAFT:
            raise ConflictError("Only draft bids can be edited", code="BID_NOT_DRAFT")
        unknown = [entry["rfp_item_id"] for entry in entries if entry["rfp_item_id"] not in rfp_items]
        if unknown:
            raise ValidationError("Bid references items outside this RFP", details={"rfp_item_ids": unknown})

        for existing in await self.for_bids([bid.id]):
            await self.db.delete(existing)
        await self.db.flush()

        total = 0.0
        for entry in entries:
            rfp_item = rfp_items[entry["rfp_item_id"]]
            qty = entry.get("qty") or rfp_item.qty
            line_total = qty * entry["unit_price"]
            total += line_total
            self.db.add(BidItem(
                project_id=self.project_id,
                bid_id=bid.id,
                rfp_item_id=rfp_item.id,
                unit_price=entry["unit_price"],
                qty=qty,
                total=line_total,
                notes=entry.get("notes"),
            ))
        await self.db.flush()
        await self.audit("REPLACE_ITEMS", bid.id, {"count": len(entries), "total": total})
        return total


class AwardRepository(ScopedRepository[Award]):
    model = Award
    entity_name = "Award"
    response_schema = AwardResponse

    async def find_for_rfp(self, rfp_id: str) -> Optional[Award]:
        rows = await self.find_many(Award.rfp_id == rfp_id, limit=1)
        return rows[0] if rows else None
