from sqlalchemy import Column, String, Text, ForeignKey, Enum, DateTime, Float
import enum
from .base import UUIDBaseModel


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PurchaseOrder(UUIDBaseModel):
    """Purchase order issued to a vendor"""
    __tablename__ = "purchase_orders"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    po_number = Column(String(32), unique=True, nullable=False)
    vendor_id = Column(String, ForeignKey("vendors.id"), nullable=False)
    budget_item_id = Column(String, ForeignKey("budget_items.id"))
    procurement_id = Column(String, ForeignKey("procurements.id"))
    description = Column(Text)
    total = Column(Float, nullable=False, default=0.0)
    paid_amount = Column(Float, nullable=False, default=0.0)
    status = Column(Enum(PurchaseOrderStatus), default=PurchaseOrderStatus.ISSUED, nullable=False)

    def __repr__(self):
        return f"<PurchaseOrder(po_number='{self.po_number}', status='{self.status}')>"


class Invoice(UUIDBaseModel):
    __tablename__ = "invoices"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    invoice_number = Column(String(100), nullable=False)
    purchase_order_id = Column(String, ForeignKey("purchase_orders.id"))
    amount = Column(Float, nullable=False)
    paid_amount = Column(Float, nullable=False, default=0.0)
    due_date = Column(DateTime(timezone=True))
    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False)

    @property
    def balance(self) -> float:
        return (self.amount or 0.0) - (self.paid_amount or 0.0)


class Payment(UUIDBaseModel):
    __tablename__ = "payments"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    invoice_id = Column(String, ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    paid_at = Column(DateTime(timezone=True))
    method = Column(String(50))
    reference = Column(String(255))
    recorded_by_id = Column(String, ForeignKey("users.id"))
