from pydantic import BaseModel, Field, EmailStr
from typing import Optional
from datetime import datetime
from ..models.schedule import EventStatus


class CalendarEventWebhook(BaseModel):
    project_id: str
    event_id: Optional[str] = None
    external_event_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    status: Optional[EventStatus] = None
    cancelled: bool = False


class InboundEmailWebhook(BaseModel):
    project_id: str
    sender: EmailStr = Field(..., alias="from")
    subject: Optional[str] = Field(None, max_length=998)
    body: Optional[str] = None
    message_id: Optional[str] = None

    model_config = {"populate_by_name": True}
