from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from ..core.exceptions import ConflictError, ValidationError
from ..models.schedule import EventStatus, ScheduleEvent
from ..schemas.schedule import ScheduleEventResponse
from .base import ScopedRepository

CONTRACTOR_VISIBLE_STATUSES = (EventStatus.PLANNED, EventStatus.DONE)


class ScheduleRepository(ScopedRepository[ScheduleEvent]):
    model = ScheduleEvent
    entity_name = "ScheduleEvent"
    response_schema = ScheduleEventResponse

    def visibility_filter(self) -> List[Any]:
        if self.context.is_contractor:
            return [
                or_(
                    ScheduleEvent.requested_by_id == self.context.user_id,
                    ScheduleEvent.status.in_(CONTRACTOR_VISIBLE_STATUSES),
                )
            ]
        return []

    def default_order(self):
        return (ScheduleEvent.start,)

    async def create(self, data: Dict[str, Any]) -> ScheduleEvent:
        data = dict(data)
        if _naive(data["end"]) <= _naive(data["start"]):
            raise ValidationError("end must be after start")
        if self.context.is_contractor:
            # contractors can only ask for time on the schedule
            data["status"] = EventStatus.REQUESTED
            data["requested_by_id"] = self.context.user_id
        elif data.get("status") is None:
            data["status"] = EventStatus.PLANNED
        return await super().create(data)

    async def update(self, entity_id: str, data: Dict[str, Any], audit_action: str = "UPDATE") -> ScheduleEvent:
        event = await self.get(entity_id)
        start = data.get("start") or event.start
        end = data.get("end") or event.end
        if _naive(end) <= _naive(start):
            raise ValidationError("end must be after start")
        return await self.apply(event, data, audit_action)

    async def approve(self, event_id: str, approved: bool, notes: Optional[str] = None) -> ScheduleEvent:
        event = await self.get(event_id)
        if event.status != EventStatus.REQUESTED:
            raise ConflictError("Only requested events can be approved or rejected", code="INVALID_STATUS")
        changes: Dict[str, Any] = {
            "status": EventStatus.PLANNED if approved else EventStatus.CANCELED,
            "approved_by_id": self.context.user_id,
        }
        if notes:
            changes["notes"] = f"{event.notes}\n{notes}" if event.notes else notes
        return await self.apply(event, changes, audit_action="APPROVE" if approved else "REJECT")

    async def find_conflicts(self, start: datetime, end: datetime, exclude_id: Optional[str] = None) -> List[ScheduleEvent]:
        """Active events overlapping [start, end)"""
        criteria = [
            ScheduleEvent.start < end,
            ScheduleEvent.end > start,
            ScheduleEvent.status.notin_((EventStatus.CANCELED, EventStatus.DONE)),
        ]
        if exclude_id:
            criteria.append(ScheduleEvent.id != exclude_id)
        return await self.find_many(*criteria)

    async def between(self, start: datetime, end: datetime) -> List[ScheduleEvent]:
        return await self.find_many(ScheduleEvent.start >= start, ScheduleEvent.start < end)

    async def find_by_external_id(self, external_event_id: str) -> Optional[ScheduleEvent]:
        rows = await self.find_many(ScheduleEvent.external_event_id == external_event_id, limit=1)
        return rows[0] if rows else None


def _naive(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; compare everything as naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
