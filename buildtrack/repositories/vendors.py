from typing import Any, Dict, Optional

from ..core.exceptions import ConflictError
from ..models.vendor import Vendor
from ..schemas.vendor import VendorResponse
from .base import ScopedRepository


class VendorRepository(ScopedRepository[Vendor]):
    model = Vendor
    entity_name = "Vendor"
    response_schema = VendorResponse

    def default_order(self):
        return (Vendor.name,)

    async def find_by_email(self, email: str) -> Optional[Vendor]:
        rows = await self.find_many(Vendor.email == email.strip().lower(), limit=1)
        return rows[0] if rows else None

    async def find_by_primary_contact(self, contact_id: str) -> Optional[Vendor]:
        rows = await self.find_many(Vendor.primary_contact_id == contact_id, limit=1)
        return rows[0] if rows else None

    async def _ensure_email_free(self, email: Optional[str], vendor_id: Optional[str] = None) -> Optional[str]:
        if not email:
            return email
        email = email.strip().lower()
        existing = await self.find_by_email(email)
        if existing is not None and existing.id != vendor_id:
            raise ConflictError(f"A vendor with email {email} already exists", code="VENDOR_EXISTS")
        return email

    async def create(self, data: Dict[str, Any]) -> Vendor:
        data = dict(data)
        data["email"] = await self._ensure_email_free(data.get("email"))
        return await super().create(data)

    async def update(self, entity_id: str, data: Dict[str, Any], audit_action: str = "UPDATE") -> Vendor:
        vendor = await self.get(entity_id)
        data = dict(data)
        if "email" in data:
            data["email"] = await self._ensure_email_free(data["email"], vendor.id)
        return await self.apply(vendor, data, audit_action)
