from sqlalchemy import Column, String, Text, ForeignKey, Enum, DateTime, JSON
import enum
from .base import UUIDBaseModel


class ContactCategory(str, enum.Enum):
    SUB = "SUB"
    SUPPLIER = "SUPPLIER"
    CONSULTANT = "CONSULTANT"
    INSPECTOR = "INSPECTOR"
    CLIENT = "CLIENT"
    OTHER = "OTHER"


class ContactStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class PortalStatus(str, enum.Enum):
    NONE = "NONE"
    INVITED = "INVITED"
    ACTIVE = "ACTIVE"


class Contact(UUIDBaseModel):
    """Project contact (subcontractor, supplier, consultant...)"""
    __tablename__ = "contacts"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255))
    emails = Column(JSON, default=list)
    phones = Column(JSON, default=list)
    category = Column(Enum(ContactCategory), default=ContactCategory.OTHER, nullable=False)
    status = Column(Enum(ContactStatus), default=ContactStatus.ACTIVE, nullable=False)
    notes = Column(Text)

    # Portal access
    portal_status = Column(Enum(PortalStatus), default=PortalStatus.NONE, nullable=False)
    invite_token = Column(String(128), unique=True, index=True)
    invite_expiry = Column(DateTime(timezone=True))
    user_id = Column(String, ForeignKey("users.id"))

    @property
    def primary_email(self):
        return self.emails[0] if self.emails else None

    def __repr__(self):
        return f"<Contact(name='{self.name}', category='{self.category}')>"
