from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from ..models.budget import BudgetStatus


class BudgetItemBase(BaseModel):
    discipline: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=100)
    item: str = Field(..., min_length=1, max_length=255)
    unit: str = Field(default="ea", max_length=50)
    qty: float = Field(default=0.0, ge=0)
    est_unit_cost: float = Field(default=0.0, ge=0)
    vendor_contact_id: Optional[str] = None
    status: BudgetStatus = BudgetStatus.BUDGETED
    notes: Optional[str] = None


class BudgetItemCreate(BudgetItemBase):
    # computed as qty * est_unit_cost when omitted
    est_total: Optional[float] = Field(None, ge=0)
    committed_total: float = Field(default=0.0, ge=0)
    paid_to_date: float = Field(default=0.0, ge=0)


class BudgetItemUpdate(BaseModel):
    discipline: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    item: Optional[str] = Field(None, min_length=1, max_length=255)
    unit: Optional[str] = Field(None, max_length=50)
    qty: Optional[float] = Field(None, ge=0)
    est_unit_cost: Optional[float] = Field(None, ge=0)
    est_total: Optional[float] = Field(None, ge=0)
    committed_total: Optional[float] = Field(None, ge=0)
    paid_to_date: Optional[float] = Field(None, ge=0)
    vendor_contact_id: Optional[str] = None
    status: Optional[BudgetStatus] = None
    notes: Optional[str] = None


class BudgetItemResponse(BudgetItemBase):
    """Full record; cost fields are stripped for roles without financial visibility"""
    id: str
    project_id: str
    est_total: float
    committed_total: float
    paid_to_date: float
    variance: float
    variance_percent: float
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
