"""Inbound integrations authenticated by a shared secret instead of a user token."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import settings
from ....core.exceptions import NotFoundError, ValidationError
from ....core.rate_limit import limiter
from ....core.responses import success_response
from ....db.database import get_db
from ....db.transactions import atomic
from ....models.project import Project
from ....models.schedule import EventStatus
from ....repositories import create_repositories, system_context
from ....schemas.webhook import CalendarEventWebhook, InboundEmailWebhook
from ...deps import verify_webhook_secret

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_webhook_secret)])


async def _get_project(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None or project.deleted_at is not None:
        raise NotFoundError("Project not found")
    return project


@router.post("/calendar-event")
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def calendar_event(
    request: Request,
    payload: CalendarEventWebhook,
    db: AsyncSession = Depends(get_db),
):
    """Sync an event changed in an external calendar back onto the schedule"""
    if not payload.external_event_id and not payload.event_id:
        raise ValidationError("external_event_id or event_id is required")

    project = await _get_project(db, payload.project_id)
    repos = create_repositories(db, system_context(project.id))

    async with atomic(db, "calendar sync"):
        event = None
        if payload.external_event_id:
            event = await repos.schedule.find_by_external_id(payload.external_event_id)
        if event is None and payload.event_id:
            event = await repos.schedule.find_unique(payload.event_id)
        if event is None:
            raise NotFoundError("Schedule event not found")

        changes: Dict[str, Any] = {}
        if payload.start is not None:
            changes["start"] = payload.start
        if payload.end is not None:
            changes["end"] = payload.end
        if payload.cancelled:
            changes["status"] = EventStatus.CANCELED
        elif payload.status is not None:
            changes["status"] = payload.status
        if payload.external_event_id and not event.external_event_id:
            changes["external_event_id"] = payload.external_event_id

        event = await repos.schedule.update(event.id, changes, audit_action="CALENDAR_SYNC")
        data = repos.schedule.present(event)

    logger.info(f"Calendar webhook updated event {data['id']} in project {project.id}")
    return success_response(data, message="Event synchronised")


@router.post("/email-inbound")
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def email_inbound(
    request: Request,
    payload: InboundEmailWebhook,
    db: AsyncSession = Depends(get_db),
):
    """Record an inbound email from a known project contact; unknown senders are ignored"""
    project = await _get_project(db, payload.project_id)
    repos = create_repositories(db, system_context(project.id))

    contact = await repos.contacts.find_by_email(str(payload.sender))
    if contact is None:
        logger.info(f"Ignoring inbound email from unknown sender in project {project.id}")
        return success_response({"matched": False}, message="Sender is not a project contact")

    async with atomic(db):
        await repos.contacts.audit(
            "INBOUND_EMAIL",
            contact.id,
            {
                "from": str(payload.sender),
                "subject": payload.subject,
                "message_id": payload.message_id,
                "body_preview": (payload.body or "")[:500],
            },
        )
        contact_id = contact.id
    return success_response({"matched": True, "contact_id": contact_id}, message="Email recorded")
