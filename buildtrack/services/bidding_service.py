"""RFP invitations, bid submission and awards."""
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from ..core.config import settings
from ..core.exceptions import ApiError, ConflictError, ValidationError
from ..models.base import utcnow
from ..models.rfp import Award, Bid, BidStatus, InvitationStatus, RfpStatus
from ..repositories import Repositories
from . import email_service
from .bid_tabulation import tabulate
from .exports import render_csv
from .vendor_service import ensure_vendor_for_contact

logger = logging.getLogger(__name__)


async def invite_contacts(
    repos: Repositories,
    rfp_id: str,
    contact_ids: Sequence[str],
    message: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Invite each contact's vendor to bid on the RFP.

    Contacts are processed independently: each successful invitation is
    committed on its own and a failing contact is reported in the results
    without undoing the others.
    """
    db = repos.db
    rfp = await repos.rfps.get(rfp_id)
    if rfp.status == RfpStatus.CLOSED:
        raise ConflictError("RFP is closed", code="RFP_CLOSED")
    rfp_title = rfp.title

    results: List[Dict[str, Any]] = []
    for contact_id in dict.fromkeys(contact_ids):
        try:
            vendor = await ensure_vendor_for_contact(repos, contact_id)
            vendor_id, vendor_name, vendor_email = vendor.id, vendor.name, vendor.email

            if await repos.invitations.find_for_vendor(rfp_id, vendor_id) is not None:
                await db.commit()
                results.append({"contact_id": contact_id, "vendor_id": vendor_id, "status": "already_invited"})
                continue

            invitation = await repos.invitations.invite(rfp_id, vendor_id, contact_id, settings.RFP_INVITE_EXPIRY_DAYS)
            await repos.bids.get_or_create_draft(rfp_id, vendor_id)
            invitation_id, token = invitation.id, invitation.token
            await db.commit()
        except IntegrityError:
            # a concurrent request invited the same vendor first
            await db.rollback()
            results.append({"contact_id": contact_id, "status": "already_invited"})
            continue
        except ApiError as exc:
            await db.rollback()
            results.append({"contact_id": contact_id, "status": "error", "error": exc.message})
            continue

        emailed = bool(vendor_email) and email_service.send_rfp_invitation(
            vendor_email, vendor_name, rfp_title, token, message
        )
        results.append({
            "contact_id": contact_id,
            "vendor_id": vendor_id,
            "invitation_id": invitation_id,
            "status": "invited",
            "emailed": emailed,
        })

    logger.info(f"RFP {rfp_id}: processed {len(results)} invitations")
    return results


async def update_bid_items(repos: Repositories, bid_id: str, items: Sequence[Dict[str, Any]], notes: Optional[str]) -> Bid:
    bid = await repos.bids.get(bid_id)
    rfp_items = {item.id: item for item in await repos.rfp_items.for_rfp(bid.rfp_id)}
    total = await repos.bid_items.replace_for_bid(bid, items, rfp_items)
    changes: Dict[str, Any] = {"total": total}
    if notes is not None:
        changes["notes"] = notes
    return await repos.bids.apply(bid, changes, trusted=True)


async def submit_bid(repos: Repositories, bid_id: str) -> Bid:
    bid = await repos.bids.get(bid_id)
    if bid.status != BidStatus.DRAFT:
        raise ConflictError("Only draft bids can be submitted", code="BID_NOT_DRAFT")
    rfp = await repos.rfps.get(bid.rfp_id)
    if rfp.status != RfpStatus.PUBLISHED:
        raise ConflictError("RFP is not open for bids", code="RFP_NOT_PUBLISHED")
    if not await repos.bid_items.for_bids([bid.id]):
        raise ValidationError("A bid needs at least one priced item")

    bid = await repos.bids.apply(
        bid, {"status": BidStatus.SUBMITTED, "submitted_at": utcnow()}, audit_action="SUBMIT", trusted=True
    )
    invitation = await repos.invitations.find_for_vendor(bid.rfp_id, bid.vendor_id)
    if invitation is not None:
        await repos.invitations.apply(invitation, {"status": InvitationStatus.SUBMITTED})
    return bid


async def award_bid(repos: Repositories, bid_id: str, budget_item_id: Optional[str] = None, notes: Optional[str] = None) -> Award:
    """Award the RFP to a submitted bid; run inside ``atomic``"""
    bid = await repos.bids.get(bid_id)
    if bid.status != BidStatus.SUBMITTED:
        raise ConflictError("Only submitted bids can be awarded", code="BID_NOT_SUBMITTED")
    if await repos.awards.find_for_rfp(bid.rfp_id) is not None:
        raise ConflictError("RFP has already been awarded", code="ALREADY_AWARDED")
    rfp = await repos.rfps.get(bid.rfp_id)

    award = await repos.awards.create({
        "rfp_id": rfp.id,
        "bid_id": bid.id,
        "vendor_id": bid.vendor_id,
        "amount": bid.total,
        "budget_item_id": budget_item_id,
        "awarded_by_id": repos.context.user_id,
        "notes": notes,
    })
    await repos.bids.apply(bid, {"status": BidStatus.AWARDED}, audit_action="AWARD", trusted=True)
    await repos.rfps.close(rfp)
    if budget_item_id:
        await repos.budget.add_commitment(budget_item_id, bid.total, source=f"award:{award.id}")
    return award


async def build_tabulation(repos: Repositories, rfp_id: str) -> Dict[str, Any]:
    rfp = await repos.rfps.get(rfp_id)
    items = await repos.rfp_items.for_rfp(rfp.id)
    bids = await repos.bids.for_rfp(rfp.id)
    bid_items = await repos.bid_items.for_bids([bid.id for bid in bids])
    vendors = {vendor.id: vendor for vendor in await repos.vendors.find_many()}
    award = await repos.awards.find_for_rfp(rfp.id)
    return {
        "rfp_id": rfp.id,
        "title": rfp.title,
        "status": rfp.status.value,
        "awarded_bid_id": award.bid_id if award else None,
        **tabulate(items, bids, bid_items, vendors),
    }


def tabulation_csv(tabulation: Dict[str, Any]) -> str:
    """One row per RFP item with each ranked bid's line total, then a totals row"""
    labels = {}
    for column in tabulation["bids"]:
        label = column["vendor_name"] or column["bid_id"]
        if label in labels.values():
            label = f"{label} ({column['bid_id'][:8]})"
        labels[column["bid_id"]] = label

    records = []
    for row in tabulation["items"]:
        record = {key: row[key] for key in ("spec_code", "description", "qty", "uom")}
        for price in row["prices"]:
            record[labels[price["bid_id"]]] = price["total"]
        record["lowest"] = labels.get(row["lowest_bid_id"])
        records.append(record)
    totals = {"description": "TOTAL", "lowest": labels.get(tabulation["lowest_bid_id"])}
    for column in tabulation["bids"]:
        totals[labels[column["bid_id"]]] = column["total"]
    records.append(totals)

    columns = ["spec_code", "description", "qty", "uom", *labels.values(), "lowest"]
    return render_csv(columns, records)
