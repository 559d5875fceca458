from sqlalchemy import Column, String, Text, ForeignKey, Enum, DateTime, JSON, Boolean
import enum
from .base import UUIDBaseModel


class EventType(str, enum.Enum):
    CALL = "CALL"
    MEETING = "MEETING"
    SITE_VISIT = "SITE_VISIT"
    WORK = "WORK"
    MILESTONE = "MILESTONE"
    INSPECTION = "INSPECTION"


class EventStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    PLANNED = "PLANNED"
    DONE = "DONE"
    CANCELED = "CANCELED"
    RESCHEDULE_NEEDED = "RESCHEDULE_NEEDED"


class ScheduleEvent(UUIDBaseModel):
    """Calendar entry on the project schedule"""
    __tablename__ = "schedule_events"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    type = Column(Enum(EventType), default=EventType.WORK, nullable=False)
    status = Column(Enum(EventStatus), default=EventStatus.PLANNED, nullable=False)
    start = Column(DateTime(timezone=True), nullable=False, index=True)
    end = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255))
    notes = Column(Text)
    weather_sensitive = Column(Boolean, default=False)

    requested_by_id = Column(String, ForeignKey("users.id"))
    approved_by_id = Column(String, ForeignKey("users.id"))
    related_contact_ids = Column(JSON, default=list)
    external_event_id = Column(String(255), index=True)

    def __repr__(self):
        return f"<ScheduleEvent(title='{self.title}', status='{self.status}')>"
