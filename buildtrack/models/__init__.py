from .base import UUIDBaseModel
from .user import User, SystemRole, UserStatus
from .project import Project, ProjectStatus, ProjectMember
from .access import Module, UserModuleAccess
from .audit_log import AuditLog
from .task import Task, TaskStatus, TaskPriority
from .budget import BudgetItem, BudgetStatus
from .contact import Contact, ContactCategory, ContactStatus, PortalStatus
from .schedule import ScheduleEvent, EventType, EventStatus
from .procurement import Procurement, OrderStatus, ProcurementPriority
from .vendor import Vendor, VendorStatus
from .rfp import Rfp, RfpStatus, RfpItem, BidInvitation, InvitationStatus, Bid, BidStatus, BidItem, Award
from .purchase_order import PurchaseOrder, PurchaseOrderStatus, Invoice, InvoiceStatus, Payment

__all__ = [
    "UUIDBaseModel",
    "User", "SystemRole", "UserStatus",
    "Project", "ProjectStatus", "ProjectMember",
    "Module", "UserModuleAccess",
    "AuditLog",
    "Task", "TaskStatus", "TaskPriority",
    "BudgetItem", "BudgetStatus",
    "Contact", "ContactCategory", "ContactStatus", "PortalStatus",
    "ScheduleEvent", "EventType", "EventStatus",
    "Procurement", "OrderStatus", "ProcurementPriority",
    "Vendor", "VendorStatus",
    "Rfp", "RfpStatus", "RfpItem", "BidInvitation", "InvitationStatus",
    "Bid", "BidStatus", "BidItem", "Award",
    "PurchaseOrder", "PurchaseOrderStatus", "Invoice", "InvoiceStatus", "Payment",
]
