from sqlalchemy import Column, String, Text, ForeignKey, Enum, DateTime, Float
import enum
from .base import UUIDBaseModel


class OrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    QUOTED = "QUOTED"
    APPROVED = "APPROVED"
    ORDERED = "ORDERED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ProcurementPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Procurement(UUIDBaseModel):
    """Material procurement request"""
    __tablename__ = "procurements"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    material_item = Column(String(255), nullable=False)
    description = Column(Text)
    quantity = Column(Float, nullable=False, default=1.0)
    unit = Column(String(50), default="ea")
    unit_cost = Column(Float, default=0.0, nullable=False)
    total_cost = Column(Float, default=0.0, nullable=False)

    order_status = Column(Enum(OrderStatus), default=OrderStatus.DRAFT, nullable=False)
    priority = Column(Enum(ProcurementPriority), default=ProcurementPriority.MEDIUM, nullable=False)
    po_number = Column(String(32), unique=True)
    required_by = Column(DateTime(timezone=True))

    supplier_id = Column(String, ForeignKey("vendors.id"))
    budget_item_id = Column(String, ForeignKey("budget_items.id"))

    approved_by_id = Column(String, ForeignKey("users.id"))
    approved_at = Column(DateTime(timezone=True))
    rejection_reason = Column(Text)

    def __repr__(self):
        return f"<Procurement(material_item='{self.material_item}', status='{self.order_status}')>"
