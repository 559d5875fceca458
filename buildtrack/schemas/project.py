from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from ..models.project import ProjectStatus
from ..models.user import SystemRole


class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    client_name: Optional[str] = Field(None, max_length=255)
    project_type: Optional[str] = Field(None, max_length=100)
    timezone: str = "UTC"
    status: ProjectStatus = ProjectStatus.PLANNING
    total_budget: float = Field(default=0.0, ge=0)
    contingency: float = Field(default=0.0, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    client_name: Optional[str] = Field(None, max_length=255)
    project_type: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = None
    status: Optional[ProjectStatus] = None
    total_budget: Optional[float] = Field(None, ge=0)
    contingency: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectResponse(ProjectBase):
    id: str
    is_archived: bool
    owner_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectMemberCreate(BaseModel):
    user_id: str
    role: SystemRole = SystemRole.VIEWER


class ProjectMemberResponse(BaseModel):
    id: str
    project_id: str
    user_id: str
    role: SystemRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
