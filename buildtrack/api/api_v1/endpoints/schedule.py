from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Query

from ....core.exceptions import ValidationError
from ....core.responses import paginate, success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....models.schedule import EventStatus, EventType, ScheduleEvent
from ....schemas.schedule import ScheduleApproval, ScheduleEventCreate, ScheduleEventUpdate
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.get("/")
async def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    start_from: Optional[datetime] = Query(None),
    start_to: Optional[datetime] = Query(None),
    status: Optional[EventStatus] = Query(None),
    type: Optional[EventType] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.READ)),
):
    """Schedule events; contractors only see their own requests and planned or completed work"""
    criteria = []
    if start_from:
        criteria.append(ScheduleEvent.start >= start_from)
    if start_to:
        criteria.append(ScheduleEvent.start < start_to)
    if status:
        criteria.append(ScheduleEvent.status == status)
    if type:
        criteria.append(ScheduleEvent.type == type)
    events, total = await scope.repos.schedule.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.schedule.present_many(events), pagination=paginate(page, limit, total))


@router.post("/", status_code=201)
async def create_event(
    event_data: ScheduleEventCreate,
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.REQUEST)),
):
    """Create an event; for contractors this is always a REQUESTED event"""
    async with atomic(scope.db):
        conflicts = await scope.repos.schedule.find_conflicts(event_data.start, event_data.end)
        event = await scope.repos.schedule.create(event_data.model_dump())
        data = scope.repos.schedule.present(event)
    message = f"Event created; overlaps {len(conflicts)} existing events" if conflicts else "Event created"
    return success_response(data, message=message)


@router.get("/today")
async def events_today(
    tz: str = Query("UTC"),
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.READ)),
):
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone {tz}")
    start = datetime.now(zone).replace(hour=0, minute=0, second=0, microsecond=0)
    events = await scope.repos.schedule.between(start, start + timedelta(days=1))
    return success_response(scope.repos.schedule.present_many(events))


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.READ)),
):
    return success_response(scope.repos.schedule.present(await scope.repos.schedule.get(event_id)))


@router.put("/{event_id}")
async def update_event(
    event_id: str,
    event_data: ScheduleEventUpdate,
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.WRITE)),
):
    async with atomic(scope.db):
        event = await scope.repos.schedule.update(event_id, event_data.model_dump(exclude_unset=True))
        data = scope.repos.schedule.present(event)
    return success_response(data, message="Event updated")


@router.post("/{event_id}/approve")
async def approve_event(
    event_id: str,
    approval: ScheduleApproval,
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.APPROVE)),
):
    """Approve (PLANNED) or reject (CANCELED) a requested event"""
    async with atomic(scope.db):
        event = await scope.repos.schedule.approve(event_id, approval.approved, approval.notes)
        data = scope.repos.schedule.present(event)
    return success_response(data, message="Event approved" if approval.approved else "Event rejected")


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    scope: ProjectScope = Depends(project_scope(Module.SCHEDULE, Action.DELETE)),
):
    async with atomic(scope.db):
        await scope.repos.schedule.delete(event_id)
    return success_response(None, message="Event deleted")
