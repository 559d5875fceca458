from sqlalchemy import Column, String, Boolean, ForeignKey, Enum, UniqueConstraint
import enum
from .base import UUIDBaseModel


class Module(str, enum.Enum):
    """Functional areas used as the unit of access control"""
    TASKS = "TASKS"
    SCHEDULE = "SCHEDULE"
    BUDGET = "BUDGET"
    CONTACTS = "CONTACTS"
    PROCUREMENT = "PROCUREMENT"
    BIDDING = "BIDDING"
    VENDORS = "VENDORS"
    PROJECTS = "PROJECTS"
    PLANS = "PLANS"
    UPLOADS = "UPLOADS"
    INVOICES = "INVOICES"


class UserModuleAccess(UUIDBaseModel):
    """Per-user, per-project, per-module capability flags"""
    __tablename__ = "user_module_access"
    __table_args__ = (
        UniqueConstraint("user_id", "project_id", "module", name="uq_user_project_module"),
    )

    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    module = Column(Enum(Module), nullable=False)
    can_view = Column(Boolean, default=False, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    can_upload = Column(Boolean, default=False, nullable=False)
    can_request = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<UserModuleAccess(user_id='{self.user_id}', module='{self.module}')>"
