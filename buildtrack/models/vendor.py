from sqlalchemy import Column, String, ForeignKey, Enum, UniqueConstraint
import enum
from .base import UUIDBaseModel


class VendorStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INVITED = "INVITED"
    BLOCKED = "BLOCKED"


class Vendor(UUIDBaseModel):
    """Vendor/Supplier taking part in bidding and purchasing"""
    __tablename__ = "vendors"
    __table_args__ = (UniqueConstraint("project_id", "email", name="uq_vendor_project_email"),)

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255))
    phone = Column(String(50))
    primary_contact_id = Column(String, ForeignKey("contacts.id"))
    status = Column(Enum(VendorStatus), default=VendorStatus.ACTIVE, nullable=False)

    def __repr__(self):
        return f"<Vendor(name='{self.name}', status='{self.status}')>"
