from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from ..models.task import TaskStatus, TaskPriority


class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    trade: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    assigned_to_id: Optional[str] = None
    related_contact_ids: List[str] = Field(default_factory=list)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    trade: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    assigned_to_id: Optional[str] = None
    related_contact_ids: Optional[List[str]] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskBulkDelete(BaseModel):
    task_ids: List[str] = Field(..., min_length=1, max_length=500)


class TaskResponse(TaskBase):
    id: str
    project_id: str
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
