from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_

from ....core.responses import paginate, success_response
from ....db.transactions import atomic
from ....models.access import Module
from ....models.vendor import Vendor, VendorStatus
from ....schemas.vendor import VendorCreate, VendorUpdate
from ....services.policy import Action
from ...deps import ProjectScope, project_scope

router = APIRouter()


@router.get("/")
async def get_vendors(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[VendorStatus] = Query(None),
    search: Optional[str] = Query(None),
    scope: ProjectScope = Depends(project_scope(Module.VENDORS, Action.READ)),
):
    """Get all vendors in the project"""
    criteria = []
    if status:
        criteria.append(Vendor.status == status)
    if search:
        criteria.append(or_(Vendor.name.ilike(f"%{search}%"), Vendor.email.ilike(f"%{search}%")))
    vendors, total = await scope.repos.vendors.paginate(*criteria, page=page, limit=limit)
    return success_response(scope.repos.vendors.present_many(vendors), pagination=paginate(page, limit, total))


@router.post("/", status_code=201)
async def create_vendor(
    vendor_data: VendorCreate,
    scope: ProjectScope = Depends(project_scope(Module.VENDORS, Action.WRITE)),
):
    """Create a new vendor"""
    async with atomic(scope.db):
        if vendor_data.primary_contact_id:
            await scope.repos.contacts.get(vendor_data.primary_contact_id)
        vendor = await scope.repos.vendors.create(vendor_data.model_dump())
        data = scope.repos.vendors.present(vendor)
    return success_response(data, message="Vendor created")


@router.get("/{vendor_id}")
async def get_vendor(
    vendor_id: str,
    scope: ProjectScope = Depends(project_scope(Module.VENDORS, Action.READ)),
):
    """Get a specific vendor"""
    return success_response(scope.repos.vendors.present(await scope.repos.vendors.get(vendor_id)))


@router.put("/{vendor_id}")
async def update_vendor(
    vendor_id: str,
    vendor_data: VendorUpdate,
    scope: ProjectScope = Depends(project_scope(Module.VENDORS, Action.WRITE)),
):
    """Update a vendor"""
    changes = vendor_data.model_dump(exclude_unset=True)
    async with atomic(scope.db):
        if changes.get("primary_contact_id"):
            await scope.repos.contacts.get(changes["primary_contact_id"])
        vendor = await scope.repos.vendors.update(vendor_id, changes)
        data = scope.repos.vendors.present(vendor)
    return success_response(data, message="Vendor updated")


@router.delete("/{vendor_id}")
async def delete_vendor(
    vendor_id: str,
    scope: ProjectScope = Depends(project_scope(Module.VENDORS, Action.DELETE)),
):
    """Delete a vendor"""
    async with atomic(scope.db):
        await scope.repos.vendors.delete(vendor_id)
    return success_response(None, message="Vendor deleted")
