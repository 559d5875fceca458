from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List
from datetime import datetime
from ..models.contact import ContactCategory, ContactStatus, PortalStatus


class ContactBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    emails: List[EmailStr] = Field(default_factory=list)
    phones: List[str] = Field(default_factory=list)
    category: ContactCategory = ContactCategory.OTHER
    status: ContactStatus = ContactStatus.ACTIVE
    notes: Optional[str] = None


class ContactCreate(ContactBase):
    pass


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    emails: Optional[List[EmailStr]] = None
    phones: Optional[List[str]] = None
    category: Optional[ContactCategory] = None
    status: Optional[ContactStatus] = None
    notes: Optional[str] = None


class ContactResponse(ContactBase):
    id: str
    project_id: str
    emails: List[str] = Field(default_factory=list)
    portal_status: PortalStatus
    invite_expiry: Optional[datetime] = None
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AcceptInviteRequest(BaseModel):
    token: str = Field(..., min_length=16, max_length=128)
