import secrets
from datetime import timedelta
from typing import Optional

from ..core.exceptions import ConflictError, ValidationError
from ..models.base import utcnow
from ..models.contact import Contact, PortalStatus
from ..schemas.contact import ContactResponse
from .base import ScopedRepository


class ContactRepository(ScopedRepository[Contact]):
    model = Contact
    entity_name = "Contact"
    response_schema = ContactResponse
    protected_fields = ScopedRepository.protected_fields | {"invite_token", "invite_expiry", "portal_status", "user_id"}

    def default_order(self):
        return (Contact.name,)

    async def find_by_email(self, email: str) -> Optional[Contact]:
        # emails is a JSON list; match in Python so SQLite and PostgreSQL agree
        email = email.strip().lower()
        for contact in await self.find_many():
            if any((candidate or "").lower() == email for candidate in contact.emails or []):
                return contact
        return None

    async def invite(self, contact_id: str, expiry_days: int) -> Contact:
        """Issue a portal invitation token for the contact"""
        contact = await self.get(contact_id)
        if not contact.emails:
            raise ValidationError("Contact has no email address")
        if contact.portal_status == PortalStatus.ACTIVE:
            raise ConflictError("Contact already has portal access", code="ALREADY_ACTIVE")
        contact.invite_token = secrets.token_hex(32)
        contact.invite_expiry = utcnow() + timedelta(days=expiry_days)
        contact.portal_status = PortalStatus.INVITED
        await self.db.flush()
        await self.audit("INVITE", contact.id, {"email": contact.primary_email})
        return contact

    async def revoke_invite(self, contact_id: str) -> Contact:
        contact = await self.get(contact_id)
        if contact.portal_status != PortalStatus.INVITED:
            raise ConflictError("Contact has no pending invitation", code="NO_PENDING_INVITE")
        contact.invite_token = None
        contact.invite_expiry = None
        contact.portal_status = PortalStatus.NONE
        await self.db.flush()
        await self.audit("REVOKE_INVITE", contact.id)
        return contact
