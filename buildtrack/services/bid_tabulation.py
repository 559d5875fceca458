"""Side-by-side comparison of the bids submitted against one RFP."""
from collections import defaultdict
from typing import Any, Dict, List, Sequence

from ..models.rfp import Bid, BidItem, BidStatus, RfpItem
from ..models.vendor import Vendor


def tabulate(
    items: Sequence[RfpItem],
    bids: Sequence[Bid],
    bid_items: Sequence[BidItem],
    vendors: Dict[str, Vendor],
) -> Dict[str, Any]:
    submitted = [bid for bid in bids if bid.status in (BidStatus.SUBMITTED, BidStatus.AWARDED)]
    lines_by_bid: Dict[str, Dict[str, BidItem]] = defaultdict(dict)
    for line in bid_items:
        lines_by_bid[line.bid_id][line.rfp_item_id] = line

    columns: List[Dict[str, Any]] = []
    for bid in submitted:
        lines = lines_by_bid.get(bid.id, {})
        missing = [item.id for item in items if item.id not in lines]
        vendor = vendors.get(bid.vendor_id)
        columns.append({
            "bid_id": bid.id,
            "vendor_id": bid.vendor_id,
            "vendor_name": vendor.name if vendor else None,
            "status": bid.status.value,
            "total": round(sum(line.total for line in lines.values()), 2),
            "missing_item_ids": missing,
            "complete": not missing,
        })

    # complete bids rank ahead of incomplete ones, cheapest first
    ranked = sorted(columns, key=lambda column: (not column["complete"], column["total"]))
    for rank, column in enumerate(ranked, start=1):
        column["rank"] = rank

    rows = []
    for item in items:
        prices = []
        for bid in submitted:
            line = lines_by_bid.get(bid.id, {}).get(item.id)
            prices.append({
                "bid_id": bid.id,
                "unit_price": line.unit_price if line else None,
                "total": line.total if line else None,
            })
        quoted = [price for price in prices if price["total"] is not None]
        lowest = min(quoted, key=lambda price: price["total"]) if quoted else None
        rows.append({
            "rfp_item_id": item.id,
            "spec_code": item.spec_code,
            "description": item.description,
            "qty": item.qty,
            "uom": item.uom,
            "prices": prices,
            "lowest_bid_id": lowest["bid_id"] if lowest else None,
        })

    return {
        "bids": ranked,
        "items": rows,
        "lowest_bid_id": ranked[0]["bid_id"] if ranked and ranked[0]["complete"] else None,
    }
