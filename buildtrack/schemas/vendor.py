from pydantic import BaseModel, Field, EmailStr
from typing import Optional
from datetime import datetime
from ..models.vendor import VendorStatus


class VendorBase(BaseModel):
    """Base vendor schema"""
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    primary_contact_id: Optional[str] = None
    status: VendorStatus = VendorStatus.ACTIVE


class VendorCreate(VendorBase):
    """Schema for creating a vendor"""
    pass


class VendorUpdate(BaseModel):
    """Schema for updating a vendor"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    primary_contact_id: Optional[str] = None
    status: Optional[VendorStatus] = None


class VendorResponse(VendorBase):
    """Schema for vendor response"""
    id: str
    project_id: str
    email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
