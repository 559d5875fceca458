from sqlalchemy import Column, String, Text, ForeignKey, Enum, Float
import enum
from .base import UUIDBaseModel


class BudgetStatus(str, enum.Enum):
    BUDGETED = "BUDGETED"
    COMMITTED = "COMMITTED"
    PAID = "PAID"


class BudgetItem(UUIDBaseModel):
    """Budget line item"""
    __tablename__ = "budget_items"

    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    discipline = Column(String(100), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    item = Column(String(255), nullable=False)
    unit = Column(String(50), default="ea")
    qty = Column(Float, default=0.0, nullable=False)

    # Cost fields, redacted for roles without financial visibility
    est_unit_cost = Column(Float, default=0.0, nullable=False)
    est_total = Column(Float, default=0.0, nullable=False)
    committed_total = Column(Float, default=0.0, nullable=False)
    paid_to_date = Column(Float, default=0.0, nullable=False)

    vendor_contact_id = Column(String, ForeignKey("contacts.id"))
    status = Column(Enum(BudgetStatus), default=BudgetStatus.BUDGETED, nullable=False)
    notes = Column(Text)

    @property
    def variance(self) -> float:
        """Committed spend over (positive) or under the estimate"""
        return (self.committed_total or 0.0) - (self.est_total or 0.0)

    @property
    def variance_percent(self) -> float:
        if not self.est_total:
            return 0.0
        return self.variance / self.est_total * 100

    def __repr__(self):
        return f"<BudgetItem(item='{self.item}', category='{self.category}')>"
