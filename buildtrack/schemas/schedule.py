from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from ..models.schedule import EventType, EventStatus


class ScheduleEventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: EventType = EventType.WORK
    start: datetime
    end: datetime
    location: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    weather_sensitive: bool = False
    related_contact_ids: List[str] = Field(default_factory=list)


class ScheduleEventCreate(ScheduleEventBase):
    status: Optional[EventStatus] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class ScheduleEventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[EventType] = None
    status: Optional[EventStatus] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    weather_sensitive: Optional[bool] = None
    related_contact_ids: Optional[List[str]] = None


class ScheduleApproval(BaseModel):
    approved: bool
    notes: Optional[str] = None


class ScheduleEventResponse(ScheduleEventBase):
    id: str
    project_id: str
    status: EventStatus
    requested_by_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    external_event_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
