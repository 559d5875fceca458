"""
Alembic migration: initial buildtrack schema

Development databases are created by buildtrack.db.database.init_db
(Base.metadata.create_all); this migration creates the same tables for
managed environments.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

SYSTEM_ROLE = ('ADMIN', 'STAFF', 'CONTRACTOR', 'VIEWER')
MODULES = (
    'TASKS', 'SCHEDULE', 'BUDGET', 'CONTACTS', 'PROCUREMENT', 'BIDDING',
    'VENDORS', 'PROJECTS', 'PLANS', 'UPLOADS', 'INVOICES',
)


def _base_columns():
    return [
        sa.Column('id', sa.String(), primary_key=True, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()')),
    ]


def _project_column():
    return sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False, index=True)


def upgrade() -> None:
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column('name', sa.String(length=255)),
        sa.Column('role', sa.Enum(*SYSTEM_ROLE, name='systemrole'), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', 'PENDING', 'SUSPENDED', name='userstatus'), nullable=False),
        sa.Column('is_active', sa.Boolean()),
        sa.Column('last_login_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'projects',
        *_base_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('address', sa.String(length=500)),
        sa.Column('client_name', sa.String(length=255)),
        sa.Column('project_type', sa.String(length=100)),
        sa.Column('timezone', sa.String(length=64)),
        sa.Column(
            'status',
            sa.Enum('PLANNING', 'ACTIVE', 'ON_HOLD', 'COMPLETED', 'CANCELLED', name='projectstatus'),
        ),
        sa.Column('is_archived', sa.Boolean()),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
        sa.Column('total_budget', sa.Float()),
        sa.Column('contingency', sa.Float()),
        sa.Column('start_date', sa.DateTime(timezone=True)),
        sa.Column('end_date', sa.DateTime(timezone=True)),
        sa.Column('owner_id', sa.String(), sa.ForeignKey('users.id')),
    )

    op.create_table(
        'project_members',
        *_base_columns(),
        _project_column(),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('role', postgresql.ENUM(*SYSTEM_ROLE, name='systemrole', create_type=False), nullable=False),
        sa.Column('is_active', sa.Boolean()),
        sa.UniqueConstraint('project_id', 'user_id', name='uq_project_member'),
    )

    op.create_table(
        'user_module_access',
        *_base_columns(),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False, index=True),
        _project_column(),
        sa.Column('module', sa.Enum(*MODULES, name='module'), nullable=False),
        sa.Column('can_view', sa.Boolean(), nullable=False),
        sa.Column('can_edit', sa.Boolean(), nullable=False),
        sa.Column('can_upload', sa.Boolean(), nullable=False),
        sa.Column('can_request', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('user_id', 'project_id', 'module', name='uq_user_project_module'),
    )

    op.create_table(
        'audit_logs',
        *_base_columns(),
        sa.Column('user_id', sa.String(), nullable=False, index=True),
        sa.Column('project_id', sa.String(), index=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String()),
        sa.Column('meta', sa.JSON()),
    )

    op.create_table(
        'contacts',
        *_base_columns(),
        _project_column(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('company', sa.String(length=255)),
        sa.Column('emails', sa.JSON()),
        sa.Column('phones', sa.JSON()),
        sa.Column(
            'category',
            sa.Enum('SUB', 'SUPPLIER', 'CONSULTANT', 'INSPECTOR', 'CLIENT', 'OTHER', name='contactcategory'),
            nullable=False,
        ),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='contactstatus'), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('portal_status', sa.Enum('NONE', 'INVITED', 'ACTIVE', name='portalstatus'), nullable=False),
        sa.Column('invite_token', sa.String(length=128), unique=True, index=True),
        sa.Column('invite_expiry', sa.DateTime(timezone=True)),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id')),
    )

    op.create_table(
        'tasks',
        *_base_columns(),
        _project_column(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.Enum('TODO', 'IN_PROGRESS', 'BLOCKED', 'DONE', name='taskstatus'), nullable=False),
        sa.Column('priority', sa.Enum('LOW', 'MEDIUM', 'HIGH', 'URGENT', name='taskpriority'), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True)),
        sa.Column('trade', sa.String(length=100)),
        sa.Column('location', sa.String(length=255)),
        sa.Column('assigned_to_id', sa.String(), sa.ForeignKey('users.id')),
        sa.Column('created_by_id', sa.String(), sa.ForeignKey('users.id')),
        sa.Column('related_contact_ids', sa.JSON()),
    )

    op.create_table(
        'budget_items',
        *_base_columns(),
        _project_column(),
        sa.Column('discipline', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False, index=True),
        sa.Column('item', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=50)),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.Column('est_unit_cost', sa.Float(), nullable=False),
        sa.Column('est_total', sa.Float(), nullable=False),
        sa.Column('committed_total', sa.Float(), nullable=False),
        sa.Column('paid_to_date', sa.Float(), nullable=False),
        sa.Column('vendor_contact_id', sa.String(), sa.ForeignKey('contacts.id')),
        sa.Column('status', sa.Enum('BUDGETED', 'COMMITTED', 'PAID', name='budgetstatus'), nullable=False),
        sa.Column('notes', sa.Text()),
    )

    op.create_table(
        'schedule_events',
        *_base_columns(),
        _project_column(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column(
            'type',
            sa.Enum('CALL', 'MEETING', 'SITE_VISIT', 'WORK', 'MILESTONE', 'INSPECTION', name='eventtype'),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.Enum('REQUESTED', 'PLANNED', 'DONE', 'CANCELED', 'RESCHEDULE_NEEDED', name='eventstatus'),
            nullable=False,
        ),
        sa.Column('start', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('location', sa.String(length=255)),
        sa.Column('notes', sa.Text()),
        sa.Column('weather_sensitive', sa.Boolean()),
        sa.Column('requested_by_id', sa.String(), sa.ForeignKey('users.id')),
        sa.Column('approved_by_id', sa.String(), sa.ForeignKey('users.id')),
        sa.Column('related_contact_ids', sa.JSON()),
        sa.Column('external_event_id', sa.String(length=255), index=True),
    )

    op.create_table(
        'vendors',
        *_base_columns(),
        _project_column(),
        sa.Column('name', sa.String(length=255), nullable=False, index=True),
        sa.Column('email', sa.String(length=255)),
        sa.Column('phone', sa.String(length=50)),
        sa.Column('primary_contact_id', sa.String(), sa.ForeignKey('contacts.id')),
        sa.Column('status', sa.Enum('ACTIVE', 'INVITED', 'BLOCKED', name='vendorstatus'), nullable=False),
        sa.UniqueConstraint('project_id', 'email', name='uq_vendor_project_email'),
    )

    op.create_table(
        'procurements',
        *_base_columns(),
        _project_column(),
        sa.Column('material_item', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(length=50)),
        sa.Column('unit_cost', sa.Float(), nullable=False),
        sa.Column('total_cost', sa.Float(), nullable=False),
        sa.Column(
            'order_status',
            sa.Enum('DRAFT', 'QUOTED', 'APPROVED', 'ORDERED', 'DELIVERED', 'CANCELLED', name='orderstatus'),
            nullable=False,
        ),
        sa.Column(
            'priority',
            sa.Enum('LOW', 'MEDIUM', 'HIGH', 'URGENT', name='procurementpriority'),
            nullable=False,
        ),
        sa.Column('po_number', sa.String(length=32), unique=True),
        sa.Column('required_by', sa.DateTime(timezone=True)),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('vendors.id')),
        sa.Column('budget_item_id', sa.String(), sa.ForeignKey('budget_items.id')),
        sa.Column('approved_by_id', sa.String(), sa.ForeignKey('users.id')),
        sa.Column('approved_at', sa.DateTime(timezone=True)),
        sa.Column('rejection_reason', sa.Text()),
    )

    op.create_table(
        'purchase_orders',
        *_base_columns(),
        _project_column(),
        sa.Column('po_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('vendor_id', sa.String(), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('budget_item_id', sa.String(), sa.ForeignKey('budget_items.id')),
        sa.Column('procurement_id', sa.String(), sa.ForeignKey('procurements.id')),
        sa.Column('description', sa.Text()),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('paid_amount', sa.Float(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('DRAFT', 'ISSUED', 'PARTIAL', 'PAID', 'CANCELLED', name='purchaseorderstatus'),
            nullable=False,
        ),
    )

    op.create_table(
        'invoices',
        *_base_columns(),
        _project_column(),
        sa.Column('invoice_number', sa.String(length=100), nullable=False),
        sa.Column('purchase_order_id', sa.String(), sa.ForeignKey('purchase_orders.id')),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('paid_amount', sa.Float(), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True)),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'PARTIAL', 'PAID', 'OVERDUE', 'CANCELLED', name='invoicestatus'),
            nullable=False,
        ),
    )

    op.create_table(
        'payments',
        *_base_columns(),
        _project_column(),
        sa.Column('invoice_id', sa.String(), sa.ForeignKey('invoices.id'), nullable=False, index=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('method', sa.String(length=50)),
        sa.Column('reference', sa.String(length=255)),
        sa.Column('recorded_by_id', sa.String(), sa.ForeignKey('users.id')),
    )

    op.create_table(
        'rfps',
        *_base_columns(),
        _project_column(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.Enum('DRAFT', 'PUBLISHED', 'CLOSED', name='rfpstatus'), nullable=False),
        sa.Column('due_at', sa.DateTime(timezone=True)),
        sa.Column('published_at', sa.DateTime(timezone=True)),
        sa.Column('created_by_id', sa.String(), sa.ForeignKey('users.id')),
    )

    op.create_table(
        'rfp_items',
        *_base_columns(),
        _project_column(),
        sa.Column('rfp_id', sa.String(), sa.ForeignKey('rfps.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('spec_code', sa.String(length=100)),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.Column('uom', sa.String(length=50)),
        sa.Column('sort_order', sa.Integer()),
    )

    op.create_table(
        'bid_invitations',
        *_base_columns(),
        _project_column(),
        sa.Column('rfp_id', sa.String(), sa.ForeignKey('rfps.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('vendor_id', sa.String(), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('contact_id', sa.String(), sa.ForeignKey('contacts.id')),
        sa.Column('token', sa.String(length=128), nullable=False, unique=True),
        sa.Column(
            'status',
            sa.Enum('SENT', 'VIEWED', 'DECLINED', 'SUBMITTED', name='invitationstatus'),
            nullable=False,
        ),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('rfp_id', 'vendor_id', name='uq_invitation_rfp_vendor'),
    )

    op.create_table(
        'bids',
        *_base_columns(),
        _project_column(),
        sa.Column('rfp_id', sa.String(), sa.ForeignKey('rfps.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('vendor_id', sa.String(), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('DRAFT', 'SUBMITTED', 'WITHDRAWN', 'AWARDED', name='bidstatus'),
            nullable=False,
        ),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('submitted_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('rfp_id', 'vendor_id', name='uq_bid_rfp_vendor'),
    )

    op.create_table(
        'bid_items',
        *_base_columns(),
        _project_column(),
        sa.Column('bid_id', sa.String(), sa.ForeignKey('bids.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column(
            'rfp_item_id', sa.String(), sa.ForeignKey('rfp_items.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('qty', sa.Float()),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.UniqueConstraint('bid_id', 'rfp_item_id', name='uq_bid_item'),
    )

    op.create_table(
        'awards',
        *_base_columns(),
        _project_column(),
        sa.Column('rfp_id', sa.String(), sa.ForeignKey('rfps.id'), nullable=False),
        sa.Column('bid_id', sa.String(), sa.ForeignKey('bids.id'), nullable=False),
        sa.Column('vendor_id', sa.String(), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('budget_item_id', sa.String(), sa.ForeignKey('budget_items.id')),
        sa.Column('awarded_by_id', sa.String(), sa.ForeignKey('users.id')),
        sa.Column('notes', sa.Text()),
        sa.UniqueConstraint('rfp_id', name='uq_award_rfp'),
    )


def downgrade() -> None:
    for table in (
        'awards', 'bid_items', 'bids', 'bid_invitations', 'rfp_items', 'rfps',
        'payments', 'invoices', 'purchase_orders', 'procurements', 'vendors',
        'schedule_events', 'budget_items', 'tasks', 'contacts', 'audit_logs',
        'user_module_access', 'project_members', 'projects', 'users',
    ):
        op.drop_table(table)
