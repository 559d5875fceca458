from typing import Any, Optional
import math


def paginate(page: int, limit: int, total: int) -> dict:
    """Pagination metadata for list envelopes"""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[dict] = None,
) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body
