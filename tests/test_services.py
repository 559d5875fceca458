from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from buildtrack.core.exceptions import ConflictError, NotFoundError, ValidationError
from buildtrack.core.identity import VerifiedIdentity
from buildtrack.db.transactions import atomic
from buildtrack.models.access import UserModuleAccess
from buildtrack.models.base import utcnow
from buildtrack.models.budget import BudgetItem, BudgetStatus
from buildtrack.models.contact import Contact, PortalStatus
from buildtrack.models.procurement import OrderStatus, Procurement
from buildtrack.models.project import ProjectMember
from buildtrack.models.rfp import Bid, BidItem, BidStatus, RfpItem
from buildtrack.models.user import SystemRole
from buildtrack.models.vendor import Vendor, VendorStatus
from buildtrack.services import bidding_service, procurement_service, user_service
from buildtrack.services.bid_tabulation import tabulate
from buildtrack.services.vendor_service import ensure_vendor_for_contact


def test_tabulation_ranks_complete_bids_first():
    items = [RfpItem(id="i1", description="Studs", qty=100), RfpItem(id="i2", description="Track", qty=50)]
    bids = [
        Bid(id="b-cheap", vendor_id="v1", status=BidStatus.SUBMITTED),
        Bid(id="b-full", vendor_id="v2", status=BidStatus.SUBMITTED),
        Bid(id="b-draft", vendor_id="v3", status=BidStatus.DRAFT),
    ]
    lines = [
        BidItem(bid_id="b-cheap", rfp_item_id="i1", unit_price=1.0, total=100.0),
        BidItem(bid_id="b-full", rfp_item_id="i1", unit_price=2.0, total=200.0),
        BidItem(bid_id="b-full", rfp_item_id="i2", unit_price=1.0, total=50.0),
        BidItem(bid_id="b-draft", rfp_item_id="i1", unit_price=0.5, total=50.0),
    ]
    vendors = {"v1": Vendor(id="v1", name="Cheap Co"), "v2": Vendor(id="v2", name="Full Co")}

    result = tabulate(items, bids, lines, vendors)

    assert [column["bid_id"] for column in result["bids"]] == ["b-full", "b-cheap"]
    assert result["bids"][1]["missing_item_ids"] == ["i2"]
    assert result["lowest_bid_id"] == "b-full"
    assert result["items"][0]["lowest_bid_id"] == "b-cheap"
    assert result["items"][1]["lowest_bid_id"] == "b-full"


def test_tabulation_without_submitted_bids():
    result = tabulate([RfpItem(id="i1", description="Studs", qty=1)], [], [], {})
    assert result["bids"] == []
    assert result["lowest_bid_id"] is None


@pytest.mark.asyncio
async def test_ensure_vendor_for_contact(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    contact = await repos.contacts.create({"name": "Ana Diaz", "company": "Diaz Masonry", "emails": ["ana@diaz.example.com"]})

    vendor = await ensure_vendor_for_contact(repos, contact.id)
    assert vendor.name == "Diaz Masonry"
    assert vendor.email == "ana@diaz.example.com"
    assert vendor.status == VendorStatus.INVITED

    assert (await ensure_vendor_for_contact(repos, contact.id)).id == vendor.id
    assert await repos.vendors.count() == 1


@pytest.mark.asyncio
async def test_ensure_vendor_matches_existing_email(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    existing = await repos.vendors.create({"name": "Diaz Masonry LLC", "email": "ana@diaz.example.com"})
    contact = await repos.contacts.create({"name": "Ana Diaz", "emails": ["ana@diaz.example.com"]})

    vendor = await ensure_vendor_for_contact(repos, contact.id)
    assert vendor.id == existing.id
    assert vendor.primary_contact_id == contact.id


@pytest.mark.asyncio
async def test_initialize_user_creates_everything_once(db_session):
    verified = VerifiedIdentity(uid="uid-1", email="New@Example.com", role=None)

    async with atomic(db_session):
        result = await user_service.initialize_user(db_session, verified, name="New User")
    assert result.created
    assert result.user.role == SystemRole.VIEWER

    membership = (await db_session.execute(
        select(ProjectMember).where(ProjectMember.user_id == "uid-1")
    )).scalar_one()
    assert membership.project_id == result.project_id
    assert membership.role == SystemRole.ADMIN

    access = (await db_session.execute(
        select(UserModuleAccess).where(UserModuleAccess.user_id == "uid-1")
    )).scalars().all()
    assert access and all(row.can_view and row.can_edit for row in access)

    async with atomic(db_session):
        again = await user_service.initialize_user(db_session, verified)
    assert not again.created
    assert again.project_id is None


@pytest.mark.asyncio
async def test_initialize_user_requires_email(db_session):
    with pytest.raises(ValidationError):
        await user_service.initialize_user(db_session, VerifiedIdentity(uid="uid-2", email=None, role=None))


@pytest.mark.asyncio
async def test_accept_expired_invite(site, seed):
    contact = Contact(
        project_id=site["project"].id,
        name="Late Larry",
        emails=["larry@example.com"],
        portal_status=PortalStatus.INVITED,
        invite_token="expired-token",
        invite_expiry=utcnow() - timedelta(days=1),
    )
    seed.session.add(contact)
    await seed.session.commit()
    larry = await seed.user("larry")

    with pytest.raises(ValidationError) as excinfo:
        await user_service.accept_contact_invite(seed.session, larry, "expired-token")
    assert excinfo.value.code == "INVITE_EXPIRED"

    with pytest.raises(NotFoundError):
        await user_service.accept_contact_invite(seed.session, larry, "unknown-token")


@pytest.mark.asyncio
async def test_bulk_approve_commits_budget(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    async with atomic(seed.session):
        line = await repos.budget.create_item({
            "discipline": "Structural", "category": "Steel", "item": "Beams", "est_total": 10000.0,
        })
        first = await repos.procurement.create({
            "material_item": "W8x10", "quantity": 10, "unit_cost": 300.0,
            "order_status": OrderStatus.QUOTED, "budget_item_id": line["id"],
        })
        second = await repos.procurement.create({
            "material_item": "W10x12", "quantity": 5, "unit_cost": 400.0,
            "order_status": OrderStatus.QUOTED, "budget_item_id": line["id"],
        })
        ids = [first.id, second.id]

    async with atomic(seed.session):
        result = await procurement_service.bulk_update(repos, {"operation": "approve", "ids": ids})
    assert result == {"operation": "approve", "count": 2}

    item = await seed.session.get(BudgetItem, line["id"])
    assert item.committed_total == 5000.0
    rows = (await seed.session.execute(select(Procurement).where(Procurement.id.in_(ids)))).scalars().all()
    assert {row.order_status for row in rows} == {OrderStatus.APPROVED}
    assert len({row.po_number for row in rows}) == 2


@pytest.mark.asyncio
async def test_bulk_update_with_missing_id_writes_nothing(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    async with atomic(seed.session):
        procurement = await repos.procurement.create({"material_item": "Nails", "quantity": 1, "unit_cost": 5.0})
        procurement_id = procurement.id

    with pytest.raises(NotFoundError) as excinfo:
        async with atomic(seed.session):
            await procurement_service.bulk_update(
                repos, {"operation": "update_priority", "priority": "URGENT", "ids": [procurement_id, "missing"]}
            )
    assert excinfo.value.code == "PROCUREMENTS_NOT_FOUND"

    row = await seed.session.get(Procurement, procurement_id)
    assert row.priority.value == "MEDIUM"


@pytest.mark.asyncio
async def test_bulk_reject_requires_reason(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    with pytest.raises(ValidationError):
        await procurement_service.bulk_update(repos, {"operation": "reject", "ids": ["any"]})


@pytest.mark.asyncio
async def test_reject_only_from_quoted(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    procurement = await repos.procurement.create({"material_item": "Glass", "quantity": 2, "unit_cost": 80.0})
    with pytest.raises(ConflictError):
        await repos.procurement.reject(procurement.id, "Too expensive")


def test_tabulation_csv_lists_items_and_totals():
    items = [RfpItem(id="i1", description="Studs", qty=100), RfpItem(id="i2", description="Track", qty=50)]
    bids = [
        Bid(id="b-cheap", vendor_id="v1", status=BidStatus.SUBMITTED),
        Bid(id="b-full", vendor_id="v2", status=BidStatus.SUBMITTED),
    ]
    lines = [
        BidItem(bid_id="b-cheap", rfp_item_id="i1", unit_price=1.0, total=100.0),
        BidItem(bid_id="b-full", rfp_item_id="i1", unit_price=2.0, total=200.0),
        BidItem(bid_id="b-full", rfp_item_id="i2", unit_price=1.0, total=50.0),
    ]
    vendors = {"v1": Vendor(id="v1", name="Cheap Co"), "v2": Vendor(id="v2", name="Full Co")}

    content = bidding_service.tabulation_csv(tabulate(items, bids, lines, vendors))

    assert content.splitlines() == [
        "spec_code,description,qty,uom,Full Co,Cheap Co,lowest",
        ",Studs,100,,200.0,100.0,Cheap Co",
        ",Track,50,,50.0,,Full Co",
        ",TOTAL,,,250.0,100.0,Full Co",
    ]


@pytest.mark.asyncio
async def test_concurrent_duplicate_invitation_is_reported(site, seed, monkeypatch):
    repos = await seed.repos(site["staff"], site["project"])
    rfp = await repos.rfps.create({"title": "Glazing", "due_at": utcnow() + timedelta(days=10)})
    contact = await repos.contacts.create({"name": "Jo Reyes", "company": "Reyes Glass", "emails": ["jo@reyes.example.com"]})
    await seed.session.commit()
    rfp_id, contact_id = rfp.id, contact.id

    async def lost_race(*args, **kwargs):
        raise IntegrityError("INSERT INTO bid_invitations", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(repos.invitations, "invite", lost_race)
    results = await bidding_service.invite_contacts(repos, rfp_id, [contact_id])

    assert results == [{"contact_id": contact_id, "status": "already_invited"}]
    assert await repos.invitations.count() == 0
    assert await repos.vendors.count() == 0


@pytest.mark.asyncio
async def test_cancelling_approved_procurement_releases_commitment(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    async with atomic(seed.session):
        line = await repos.budget.create_item({
            "discipline": "Structural", "category": "Steel", "item": "Joists", "est_total": 5000.0,
        })
        procurement = await repos.procurement.create({
            "material_item": "Open-web joists", "quantity": 10, "unit_cost": 200.0,
            "order_status": OrderStatus.QUOTED, "budget_item_id": line["id"],
        })
        await procurement_service.approve_procurement(repos, procurement.id)
    item = await seed.session.get(BudgetItem, line["id"])
    assert item.committed_total == 2000.0
    assert item.status == BudgetStatus.COMMITTED

    async with atomic(seed.session):
        cancelled = await procurement_service.change_status(repos, procurement.id, OrderStatus.CANCELLED)
    assert cancelled.order_status == OrderStatus.CANCELLED
    item = await seed.session.get(BudgetItem, line["id"])
    assert item.committed_total == 0.0
    assert item.status == BudgetStatus.BUDGETED

    async with atomic(seed.session):
        reopened = await procurement_service.change_status(repos, procurement.id, "DRAFT")
    assert reopened.order_status == OrderStatus.DRAFT
    assert (await seed.session.get(BudgetItem, line["id"])).committed_total == 0.0


@pytest.mark.asyncio
async def test_cancelling_draft_procurement_leaves_budget_alone(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    async with atomic(seed.session):
        line = await repos.budget.create_item({
            "discipline": "Civil", "category": "Earthwork", "item": "Fill", "est_total": 800.0,
        })
        await repos.budget.add_commitment(line["id"], 300.0)
        procurement = await repos.procurement.create({
            "material_item": "Gravel", "quantity": 1, "unit_cost": 100.0, "budget_item_id": line["id"],
        })

    async with atomic(seed.session):
        await procurement_service.change_status(repos, procurement.id, OrderStatus.CANCELLED)
    assert (await seed.session.get(BudgetItem, line["id"])).committed_total == 300.0


@pytest.mark.asyncio
async def test_bulk_delete_refuses_non_draft(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    async with atomic(seed.session):
        draft = await repos.procurement.create({"material_item": "Caulk"})
        quoted = await repos.procurement.create({"material_item": "Sealant", "order_status": OrderStatus.QUOTED})
        ids = [draft.id, quoted.id]

    with pytest.raises(ConflictError) as excinfo:
        async with atomic(seed.session):
            await procurement_service.bulk_update(repos, {"operation": "delete", "ids": ids})
    assert excinfo.value.code == "INVALID_STATUS"

    rows = (await seed.session.execute(select(Procurement).where(Procurement.id.in_(ids)))).scalars().all()
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_bulk_status_update_follows_transitions(site, seed):
    repos = await seed.repos(site["staff"], site["project"])
    async with atomic(seed.session):
        first = await repos.procurement.create({"material_item": "Brick"})
        second = await repos.procurement.create({"material_item": "Mortar"})
        ids = [first.id, second.id]

    async with atomic(seed.session):
        await procurement_service.bulk_update(
            repos, {"operation": "update_status", "order_status": OrderStatus.QUOTED, "ids": ids}
        )
    with pytest.raises(ConflictError):
        async with atomic(seed.session):
            await procurement_service.bulk_update(
                repos, {"operation": "update_status", "order_status": OrderStatus.DELIVERED, "ids": ids}
            )

    rows = (await seed.session.execute(select(Procurement).where(Procurement.id.in_(ids)))).scalars().all()
    assert {row.order_status for row in rows} == {OrderStatus.QUOTED}
