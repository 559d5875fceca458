from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from .base import ScopedRepository
from .bidding import (
    AwardRepository, BidInvitationRepository, BidItemRepository, BidRepository, RfpItemRepository, RfpRepository,
)
from .budget import BudgetRepository
from .contacts import ContactRepository
from .context import SecurityContext, create_security_context, system_context
from .procurement import (
    InvoiceRepository, PaymentRepository, ProcurementRepository, PurchaseOrderRepository, next_po_number,
)
from .projects import ModuleAccessRepository, ProjectMemberRepository, ProjectRepository
from .schedule import ScheduleRepository
from .tasks import TaskRepository
from .vendors import VendorRepository


@dataclass
class Repositories:
    """One scoped repository per entity, all bound to the same context and session"""

    context: SecurityContext
    project: ProjectRepository
    members: ProjectMemberRepository
    module_access: ModuleAccessRepository
    tasks: TaskRepository
    budget: BudgetRepository
    contacts: ContactRepository
    schedule: ScheduleRepository
    procurement: ProcurementRepository
    purchase_orders: PurchaseOrderRepository
    invoices: InvoiceRepository
    payments: PaymentRepository
    vendors: VendorRepository
    rfps: RfpRepository
    rfp_items: RfpItemRepository
    invitations: BidInvitationRepository
    bids: BidRepository
    bid_items: BidItemRepository
    awards: AwardRepository

    @property
    def db(self) -> AsyncSession:
        return self.tasks.db


def create_repositories(db: AsyncSession, context: SecurityContext) -> Repositories:
    return Repositories(
        context=context,
        project=ProjectRepository(db, context),
        members=ProjectMemberRepository(db, context),
        module_access=ModuleAccessRepository(db, context),
        tasks=TaskRepository(db, context),
        budget=BudgetRepository(db, context),
        contacts=ContactRepository(db, context),
        schedule=ScheduleRepository(db, context),
        procurement=ProcurementRepository(db, context),
        purchase_orders=PurchaseOrderRepository(db, context),
        invoices=InvoiceRepository(db, context),
        payments=PaymentRepository(db, context),
        vendors=VendorRepository(db, context),
        rfps=RfpRepository(db, context),
        rfp_items=RfpItemRepository(db, context),
        invitations=BidInvitationRepository(db, context),
        bids=BidRepository(db, context),
        bid_items=BidItemRepository(db, context),
        awards=AwardRepository(db, context),
    )


__all__ = [
    "Repositories",
    "ScopedRepository",
    "SecurityContext",
    "create_repositories",
    "create_security_context",
    "next_po_number",
    "system_context",
]
