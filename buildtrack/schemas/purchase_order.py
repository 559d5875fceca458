from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from ..models.purchase_order import PurchaseOrderStatus, InvoiceStatus


class PurchaseOrderCreate(BaseModel):
    vendor_id: str
    total: float = Field(..., gt=0)
    po_number: Optional[str] = Field(None, max_length=32)
    budget_item_id: Optional[str] = None
    procurement_id: Optional[str] = None
    description: Optional[str] = None


class PurchaseOrderResponse(BaseModel):
    id: str
    project_id: str
    po_number: str
    vendor_id: str
    budget_item_id: Optional[str] = None
    procurement_id: Optional[str] = None
    description: Optional[str] = None
    total: float
    paid_amount: float
    status: PurchaseOrderStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceCreate(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    purchase_order_id: Optional[str] = None
    due_date: Optional[datetime] = None


class InvoiceResponse(BaseModel):
    id: str
    project_id: str
    invoice_number: str
    purchase_order_id: Optional[str] = None
    amount: float
    paid_amount: float
    balance: float
    due_date: Optional[datetime] = None
    status: InvoiceStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentCreate(BaseModel):
    invoice_id: str
    amount: float
    method: Optional[str] = Field(None, max_length=50)
    reference: Optional[str] = Field(None, max_length=255)
    paid_at: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: str
    project_id: str
    invoice_id: str
    amount: float
    paid_at: Optional[datetime] = None
    method: Optional[str] = None
    reference: Optional[str] = None
    recorded_by_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
