from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List
from datetime import datetime
from ..models.user import SystemRole, UserStatus
from ..models.access import Module


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: SystemRole
    status: UserStatus
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ModuleAccessEntry(BaseModel):
    module: Module
    can_view: bool = False
    can_edit: bool = False
    can_upload: bool = False
    can_request: bool = False

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    """Admin-created user; the uid comes from the identity provider"""
    id: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    name: Optional[str] = Field(None, max_length=255)
    role: SystemRole = SystemRole.VIEWER
    project_id: str
    module_access: Optional[List[ModuleAccessEntry]] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    role: Optional[SystemRole] = None
    status: Optional[UserStatus] = None


class PermissionsUpdate(BaseModel):
    modules: List[ModuleAccessEntry]


class InitializeRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    project_name: Optional[str] = Field(None, max_length=255)
