from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime
from ..models.procurement import OrderStatus, ProcurementPriority


class ProcurementBase(BaseModel):
    material_item: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    quantity: float = Field(default=1.0, gt=0)
    unit: str = Field(default="ea", max_length=50)
    unit_cost: float = Field(default=0.0, ge=0)
    priority: ProcurementPriority = ProcurementPriority.MEDIUM
    required_by: Optional[datetime] = None
    supplier_id: Optional[str] = None
    budget_item_id: Optional[str] = None


class ProcurementCreate(ProcurementBase):
    order_status: OrderStatus = OrderStatus.DRAFT


class ProcurementUpdate(BaseModel):
    material_item: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    quantity: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = Field(None, max_length=50)
    unit_cost: Optional[float] = Field(None, ge=0)
    priority: Optional[ProcurementPriority] = None
    required_by: Optional[datetime] = None
    supplier_id: Optional[str] = None
    budget_item_id: Optional[str] = None
    order_status: Optional[OrderStatus] = None


class ProcurementResponse(ProcurementBase):
    id: str
    project_id: str
    total_cost: float
    order_status: OrderStatus
    po_number: Optional[str] = None
    approved_by_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProcurementReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class ProcurementBulkRequest(BaseModel):
    operation: Literal["approve", "reject", "delete", "update_status", "assign_supplier", "update_priority"]
    ids: List[str] = Field(..., min_length=1, max_length=200)
    order_status: Optional[OrderStatus] = None
    supplier_id: Optional[str] = None
    priority: Optional[ProcurementPriority] = None
    reason: Optional[str] = None


class ProcurementStatusUpdate(BaseModel):
    order_status: OrderStatus
