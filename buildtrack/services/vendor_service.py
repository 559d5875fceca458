from ..core.exceptions import ValidationError
from ..models.vendor import Vendor, VendorStatus
from ..repositories import Repositories


async def ensure_vendor_for_contact(repos: Repositories, contact_id: str) -> Vendor:
    """Vendor record backing a contact, created on first use.

    Looks the vendor up by primary contact, then by the contact's email;
    only when neither matches is a new INVITED vendor created.
    """
    contact = await repos.contacts.get(contact_id)

    vendor = await repos.vendors.find_by_primary_contact(contact.id)
    if vendor is not None:
        return vendor

    email = contact.primary_email
    if email:
        vendor = await repos.vendors.find_by_email(email)
        if vendor is not None:
            if not vendor.primary_contact_id:
                await repos.vendors.apply(vendor, {"primary_contact_id": contact.id})
            return vendor
    elif not contact.company and not contact.name:
        raise ValidationError("Contact has neither a name nor an email")

    phones = contact.phones or []
    return await repos.vendors.create({
        "name": contact.company or contact.name,
        "email": email,
        "phone": phones[0] if phones else None,
        "primary_contact_id": contact.id,
        "status": VendorStatus.INVITED,
    })
