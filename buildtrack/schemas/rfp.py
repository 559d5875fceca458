from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from ..models.rfp import RfpStatus, BidStatus, InvitationStatus


class RfpCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_at: Optional[datetime] = None


class RfpUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_at: Optional[datetime] = None


class RfpResponse(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: RfpStatus
    due_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RfpItemInput(BaseModel):
    id: Optional[str] = None
    spec_code: Optional[str] = Field(None, max_length=100)
    description: str = Field(..., min_length=1)
    qty: float = Field(default=1.0, gt=0)
    uom: str = Field(default="ea", max_length=50)
    sort_order: Optional[int] = None


class RfpItemsUpsert(BaseModel):
    items: List[RfpItemInput]
    # delete items not present in the payload
    replace: bool = False


class RfpItemResponse(BaseModel):
    id: str
    rfp_id: str
    spec_code: Optional[str] = None
    description: str
    qty: float
    uom: Optional[str] = None
    sort_order: int

    model_config = {"from_attributes": True}


class RfpInviteRequest(BaseModel):
    contact_ids: List[str] = Field(..., min_length=1, max_length=100)
    message: Optional[str] = None


class BidInvitationResponse(BaseModel):
    id: str
    rfp_id: str
    vendor_id: str
    contact_id: Optional[str] = None
    status: InvitationStatus
    expires_at: datetime

    model_config = {"from_attributes": True}


class BidItemInput(BaseModel):
    rfp_item_id: str
    unit_price: float = Field(..., ge=0)
    qty: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None


class BidItemsUpdate(BaseModel):
    items: List[BidItemInput]
    notes: Optional[str] = None


class BidItemResponse(BaseModel):
    id: str
    rfp_item_id: str
    unit_price: float
    qty: Optional[float] = None
    total: float
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class BidResponse(BaseModel):
    id: str
    project_id: str
    rfp_id: str
    vendor_id: str
    status: BidStatus
    total: float
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AwardRequest(BaseModel):
    budget_item_id: Optional[str] = None
    notes: Optional[str] = None


class AwardResponse(BaseModel):
    id: str
    rfp_id: str
    bid_id: str
    vendor_id: str
    amount: float
    budget_item_id: Optional[str] = None
    awarded_by_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
