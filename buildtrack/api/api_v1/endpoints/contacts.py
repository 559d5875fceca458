from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import settings
from ....core.exceptions import ApiError
from ....core.responses import paginate, success_response
from ....db.database import get_db
from ....db.transactions import atomic
from ....models.access import Module
from ....models.contact import Contact, ContactCategory, PortalStatus
from ....models.user import User
from ....schemas.contact import AcceptInviteRequest, ContactCreate, ContactResponse, ContactUpdate
from ....services import email_service, user_service
from ....services.policy import Action
from ...deps import ProjectScope, get_current_user, project_scope

router = APIRouter()


@router.get("/")
async def list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    category: Optional[ContactCategory] = Query(None),
    portal_status: Optional[PortalStatus] = Query(None),
    search: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.READ)),
):
    criteria = []
    if category:
        criteria.append(Contact.category == category)
    if portal_status:
        criteria.append(Contact.portal_status == portal_status)
    if search:
        criteria.append(or_(Contact.name.ilike(f"%{search}%"), Contact.company.ilike(f"%{search}%")))
    contacts, total = await scope.repos.contacts.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.contacts.present_many(contacts), pagination=paginate(page, limit, total))


@router.post("/", status_code=201)
async def create_contact(
    contact_data: ContactCreate,
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.WRITE)),
):
    payload = contact_data.model_dump()
    payload["emails"] = [str(email).lower() for email in payload["emails"]]
    async with atomic(scope.db):
        contact = await scope.repos.contacts.create(payload)
        data = scope.repos.contacts.present(contact)
    return success_response(data, message="Contact created")


@router.post("/accept-invite")
async def accept_invite(
    payload: AcceptInviteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Accept a portal invitation; no project header, the token identifies the project"""
    async with atomic(db, "invite acceptance"):
        contact = await user_service.accept_contact_invite(db, current_user, payload.token)
        data = ContactResponse.model_validate(contact).model_dump(mode="json")
    return success_response(data, message="Invitation accepted")


@router.get("/{contact_id}")
async def get_contact(
    contact_id: str,
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.READ)),
):
    return success_response(scope.repos.contacts.present(await scope.repos.contacts.get(contact_id)))


@router.put("/{contact_id}")
async def update_contact(
    contact_id: str,
    contact_data: ContactUpdate,
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.WRITE)),
):
    changes = contact_data.model_dump(exclude_unset=True)
    if changes.get("emails") is not None:
        changes["emails"] = [str(email).lower() for email in changes["emails"]]
    async with atomic(scope.db):
        contact = await scope.repos.contacts.update(contact_id, changes)
        data = scope.repos.contacts.present(contact)
    return success_response(data, message="Contact updated")


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str,
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.DELETE)),
):
    async with atomic(scope.db):
        await scope.repos.contacts.delete(contact_id)
    return success_response(None, message="Contact deleted")


@router.post("/{contact_id}/invite")
async def invite_contact(
    contact_id: str,
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.WRITE)),
):
    """Send the contact a portal invitation; the invite is undone if the email fails"""
    async with atomic(scope.db, "portal invitation"):
        project = await scope.repos.project.get()
        contact = await scope.repos.contacts.invite(contact_id, settings.CONTACT_INVITE_EXPIRY_DAYS)
        sent = email_service.send_portal_invite(contact.primary_email, contact.name, project.name, contact.invite_token)
        if not sent:
            raise ApiError("Failed to send invitation email", code="EMAIL_DELIVERY_FAILED", status_code=502)
        data = scope.repos.contacts.present(contact)
    return success_response(data, message="Invitation sent")


@router.delete("/{contact_id}/invite")
async def revoke_invite(
    contact_id: str,
    scope: ProjectScope = Depends(project_scope(Module.CONTACTS, Action.WRITE)),
):
    async with atomic(scope.db):
        contact = await scope.repos.contacts.revoke_invite(contact_id)
        data = scope.repos.contacts.present(contact)
    return success_response(data, message="Invitation revoked")
