from sqlalchemy import Column, String, Text, ForeignKey, Enum, DateTime, Float, Integer, UniqueConstraint
import enum
from .base import UUIDBaseModel


class RfpStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"


class InvitationStatus(str, enum.Enum):
    SENT = "SENT"
    VIEWED = "VIEWED"
    DECLINED = "DECLINED"
    SUBMITTED = "SUBMITTED"


class BidStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    WITHDRAWN = "WITHDRAWN"
    AWARDED = "AWARDED"


class Rfp(UUIDBaseModel):
    """Request for proposal sent to vendors"""
    __tablename__ = "rfps"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(Enum(RfpStatus), default=RfpStatus.DRAFT, nullable=False)
    due_at = Column(DateTime(timezone=True))
    published_at = Column(DateTime(timezone=True))
    created_by_id = Column(String, ForeignKey("users.id"))

    def __repr__(self):
        return f"<Rfp(title='{self.title}', status='{self.status}')>"


class RfpItem(UUIDBaseModel):
    __tablename__ = "rfp_items"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    rfp_id = Column(String, ForeignKey("rfps.id", ondelete="CASCADE"), nullable=False, index=True)
    spec_code = Column(String(100))
    description = Column(Text, nullable=False)
    qty = Column(Float, nullable=False, default=1.0)
    uom = Column(String(50), default="ea")
    sort_order = Column(Integer, default=0)


class BidInvitation(UUIDBaseModel):
    __tablename__ = "bid_invitations"
    __table_args__ = (UniqueConstraint("rfp_id", "vendor_id", name="uq_invitation_rfp_vendor"),)

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    rfp_id = Column(String, ForeignKey("rfps.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(String, ForeignKey("vendors.id"), nullable=False)
    contact_id = Column(String, ForeignKey("contacts.id"))
    token = Column(String(128), unique=True, nullable=False)
    status = Column(Enum(InvitationStatus), default=InvitationStatus.SENT, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)


class Bid(UUIDBaseModel):
    __tablename__ = "bids"
    __table_args__ = (UniqueConstraint("rfp_id", "vendor_id", name="uq_bid_rfp_vendor"),)

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    rfp_id = Column(String, ForeignKey("rfps.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(String, ForeignKey("vendors.id"), nullable=False)
    status = Column(Enum(BidStatus), default=BidStatus.DRAFT, nullable=False)
    total = Column(Float, default=0.0, nullable=False)
    notes = Column(Text)
    submitted_at = Column(DateTime(timezone=True))


class BidItem(UUIDBaseModel):
    __tablename__ = "bid_items"
    __table_args__ = (UniqueConstraint("bid_id", "rfp_item_id", name="uq_bid_item"),)

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    bid_id = Column(String, ForeignKey("bids.id", ondelete="CASCADE"), nullable=False, index=True)
    rfp_item_id = Column(String, ForeignKey("rfp_items.id", ondelete="CASCADE"), nullable=False)
    unit_price = Column(Float, nullable=False, default=0.0)
    qty = Column(Float)
    total = Column(Float, nullable=False, default=0.0)
    notes = Column(Text)


class Award(UUIDBaseModel):
    __tablename__ = "awards"
    __table_args__ = (UniqueConstraint("rfp_id", name="uq_award_rfp"),)

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    rfp_id = Column(String, ForeignKey("rfps.id"), nullable=False)
    bid_id = Column(String, ForeignKey("bids.id"), nullable=False)
    vendor_id = Column(String, ForeignKey("vendors.id"), nullable=False)
    amount = Column(Float, nullable=False)
    budget_item_id = Column(String, ForeignKey("budget_items.id"))
    awarded_by_id = Column(String, ForeignKey("users.id"))
    notes = Column(Text)
