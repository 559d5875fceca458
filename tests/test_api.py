from datetime import timedelta

import pytest
from sqlalchemy import select

from buildtrack.core.exceptions import ValidationError
from buildtrack.db import database
from buildtrack.models.audit_log import AuditLog
from buildtrack.models.base import utcnow
from buildtrack.models.contact import Contact
from buildtrack.models.user import User
from buildtrack.services import email_service, policy, user_service
from buildtrack.services.policy import COST_FIELDS
from conftest import auth_headers


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_missing_token(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Missing bearer token", "code": "MISSING_TOKEN"}


@pytest.mark.asyncio
async def test_invalid_and_expired_tokens(client):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"

    response = await client.get("/api/v1/auth/me", headers=auth_headers("someone", expires_in=-60))
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_uninitialized_user(client):
    response = await client.get("/api/v1/auth/me", headers=auth_headers("newcomer"))
    assert response.status_code == 401
    assert response.json()["code"] == "USER_NOT_INITIALIZED"


@pytest.mark.asyncio
async def test_initialize_is_idempotent(client):
    headers = auth_headers("firebase-uid-1", email="Owner@Example.com")

    status = await client.get("/api/v1/auth/initialize", headers=headers)
    assert status.json()["data"]["initialized"] is False

    first = await client.post("/api/v1/auth/initialize", headers=headers, json={"project_name": "Hillside Homes"})
    assert first.status_code == 200
    body = first.json()["data"]
    assert body["already_initialized"] is False
    assert body["user"]["email"] == "owner@example.com"
    assert body["user"]["role"] == "VIEWER"
    project_id = body["project_id"]

    second = await client.post("/api/v1/auth/initialize", headers=headers)
    assert second.json()["data"]["already_initialized"] is True
    assert second.json()["data"]["project_id"] is None

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.json()["data"]["project_ids"] == [project_id]
    assert me.json()["data"]["rate_limit_per_minute"] == 50

    # the creator runs the project they were given
    project = await client.get(f"/api/v1/projects/{project_id}", headers=headers)
    assert project.status_code == 200
    assert project.json()["data"]["name"] == "Hillside Homes"
    assert project.json()["data"]["capabilities"]["BUDGET"]["edit"] is True


@pytest.mark.asyncio
async def test_initialize_uses_role_claim(client):
    headers = auth_headers("staff-uid", email="pm@example.com", role="staff")
    response = await client.post("/api/v1/auth/initialize", headers=headers)
    assert response.json()["data"]["user"]["role"] == "STAFF"


@pytest.mark.asyncio
async def test_project_id_required(client, site):
    response = await client.get("/api/v1/tasks/", headers=auth_headers("admin"))
    assert response.status_code == 400
    assert response.json()["code"] == "PROJECT_ID_REQUIRED"


@pytest.mark.asyncio
async def test_denied_request_is_audited(client, site):
    project_id = site["project"].id
    response = await client.get("/api/v1/procurement/", headers=auth_headers("contractor", project_id))
    assert response.status_code == 403
    assert response.json()["success"] is False
    assert response.json()["code"] == "FORBIDDEN"

    async with database.AsyncSessionLocal() as session:
        result = await session.execute(
            select(AuditLog).where(AuditLog.user_id == "contractor", AuditLog.entity == "Policy")
        )
        rows = result.scalars().all()
    assert [row.action for row in rows] == ["POLICY_DENY"]
    assert rows[0].meta["module"] == "PROCUREMENT"


@pytest.mark.asyncio
async def test_allowed_request_is_audited_once(client, site):
    project_id = site["project"].id
    response = await client.get("/api/v1/tasks/", headers=auth_headers("viewer", project_id))
    assert response.status_code == 200

    async with database.AsyncSessionLocal() as session:
        result = await session.execute(
            select(AuditLog).where(AuditLog.user_id == "viewer", AuditLog.action == "POLICY_ALLOW")
        )
        assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_validation_error_envelope(client, site):
    response = await client.post(
        "/api/v1/tasks/",
        headers=auth_headers("admin", site["project"].id),
        json={"title": "", "priority": "SOMEDAY"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    fields = {detail["field"] for detail in body["details"]}
    assert "body.title" in fields
    assert "body.priority" in fields


@pytest.mark.asyncio
async def test_task_list_pagination(client, site):
    headers = auth_headers("staff", site["project"].id)
    for number in range(3):
        created = await client.post("/api/v1/tasks/", headers=headers, json={"title": f"Task {number}"})
        assert created.status_code == 201

    response = await client.get("/api/v1/tasks/?page=2&limit=2", headers=headers)
    body = response.json()
    assert body["success"] is True
    assert len(body["data"]) == 1
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}


@pytest.mark.asyncio
async def test_bulk_delete_tasks(client, site):
    project_id = site["project"].id
    admin = auth_headers("admin", project_id)
    created = await client.post("/api/v1/tasks/", headers=admin, json={"title": "Demo"})
    task_id = created.json()["data"]["id"]

    denied = await client.post(
        "/api/v1/tasks/bulk-delete", headers=auth_headers("contractor", project_id), json={"task_ids": [task_id]}
    )
    assert denied.status_code == 403

    missing = await client.post("/api/v1/tasks/bulk-delete", headers=admin, json={"task_ids": [task_id, "nope"]})
    assert missing.status_code == 404
    assert missing.json()["code"] == "TASKS_NOT_FOUND"
    assert missing.json()["details"] == {"missing_ids": ["nope"]}
    assert (await client.get(f"/api/v1/tasks/{task_id}", headers=admin)).status_code == 200

    deleted = await client.post("/api/v1/tasks/bulk-delete", headers=admin, json={"task_ids": [task_id]})
    assert deleted.status_code == 200
    assert (await client.get(f"/api/v1/tasks/{task_id}", headers=admin)).status_code == 404


@pytest.mark.asyncio
async def test_budget_list_redacted_for_contractor(client, site):
    project_id = site["project"].id
    created = await client.post(
        "/api/v1/budget/",
        headers=auth_headers("admin", project_id),
        json={"discipline": "Civil", "category": "Paving", "item": "Asphalt", "qty": 20, "est_unit_cost": 50},
    )
    assert created.status_code == 201
    assert created.json()["data"]["est_total"] == 1000.0

    contractor_view = await client.get("/api/v1/budget/", headers=auth_headers("contractor", project_id))
    assert contractor_view.status_code == 200
    record = contractor_view.json()["data"][0]
    assert record["item"] == "Asphalt"
    assert not COST_FIELDS & set(record)

    exceptions = await client.get("/api/v1/budget/exceptions", headers=auth_headers("contractor", project_id))
    assert exceptions.status_code == 403


@pytest.mark.asyncio
async def test_contractor_schedule_request_and_approval(client, site):
    project_id = site["project"].id
    start = utcnow() + timedelta(days=3)
    requested = await client.post(
        "/api/v1/schedule/",
        headers=auth_headers("contractor", project_id),
        json={"title": "Scaffold erection", "start": start.isoformat(), "end": (start + timedelta(hours=8)).isoformat()},
    )
    assert requested.status_code == 201
    event = requested.json()["data"]
    assert event["status"] == "REQUESTED"

    denied = await client.post(
        f"/api/v1/schedule/{event['id']}/approve",
        headers=auth_headers("contractor", project_id),
        json={"approved": True},
    )
    assert denied.status_code == 403

    approved = await client.post(
        f"/api/v1/schedule/{event['id']}/approve",
        headers=auth_headers("staff", project_id),
        json={"approved": True, "notes": "Go ahead"},
    )
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "PLANNED"


@pytest.mark.asyncio
async def test_rfp_invite_is_idempotent(client, site, monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "send_rfp_invitation", lambda *args, **kwargs: sent.append(args) or True)

    project_id = site["project"].id
    headers = auth_headers("staff", project_id)
    contact = await client.post(
        "/api/v1/contacts/",
        headers=headers,
        json={"name": "Dana Ruiz", "company": "Ruiz Electric", "emails": ["dana@ruiz.example.com"], "category": "SUB"},
    )
    assert contact.status_code == 201, contact.json()
    contact_id = contact.json()["data"]["id"]

    rfp = await client.post(
        f"/api/v1/projects/{project_id}/rfps",
        headers=headers,
        json={"title": "Electrical rough-in", "due_at": (utcnow() + timedelta(days=14)).isoformat()},
    )
    assert rfp.status_code == 201
    rfp_id = rfp.json()["data"]["id"]

    first = await client.post(
        f"/api/v1/rfps/{rfp_id}/invite", headers=headers, json={"contact_ids": [contact_id, "ghost"]}
    )
    assert first.status_code == 200
    results = {result["contact_id"]: result for result in first.json()["data"]["results"]}
    assert results[contact_id]["status"] == "invited"
    assert results["ghost"]["status"] == "error"

    second = await client.post(f"/api/v1/rfps/{rfp_id}/invite", headers=headers, json={"contact_ids": [contact_id]})
    assert second.json()["data"]["results"][0]["status"] == "already_invited"
    assert len(sent) == 1

    vendors = await client.get("/api/v1/vendors/", headers=headers)
    assert [vendor["name"] for vendor in vendors.json()["data"]] == ["Ruiz Electric"]


@pytest.mark.asyncio
async def test_bid_submission_and_award(client, site, monkeypatch):
    monkeypatch.setattr(email_service, "send_rfp_invitation", lambda *args, **kwargs: True)
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)

    line = await client.post(
        "/api/v1/budget/", headers=headers,
        json={"discipline": "MEP", "category": "Electrical", "item": "Rough-in", "est_total": 10000},
    )
    contact = await client.post(
        "/api/v1/contacts/", headers=headers, json={"name": "Lee Wong", "emails": ["lee@wong.example.com"]},
    )
    assert contact.status_code == 201, contact.json()
    rfp = await client.post(
        f"/api/v1/projects/{project_id}/rfps", headers=headers,
        json={"title": "Wiring", "due_at": (utcnow() + timedelta(days=7)).isoformat()},
    )
    rfp_id = rfp.json()["data"]["id"]

    items = await client.put(
        f"/api/v1/projects/{project_id}/rfps/{rfp_id}/items", headers=headers,
        json={"items": [{"description": "Conduit", "qty": 100, "uom": "ft"}, {"description": "Panels", "qty": 2}]},
    )
    assert items.status_code == 200
    conduit, panels = items.json()["data"]

    published = await client.post(f"/api/v1/projects/{project_id}/rfps/{rfp_id}/publish", headers=headers)
    assert published.json()["data"]["status"] == "PUBLISHED"

    invite = await client.post(
        f"/api/v1/rfps/{rfp_id}/invite", headers=headers, json={"contact_ids": [contact.json()["data"]["id"]]}
    )
    assert invite.json()["data"]["results"][0]["status"] == "invited"

    bids = await client.get(f"/api/v1/rfps/{rfp_id}/bids", headers=headers)
    bid_id = bids.json()["data"][0]["id"]

    priced = await client.put(
        f"/api/v1/bids/{bid_id}", headers=headers,
        json={"items": [
            {"rfp_item_id": conduit["id"], "unit_price": 3.5},
            {"rfp_item_id": panels["id"], "unit_price": 2000},
        ]},
    )
    assert priced.json()["data"]["total"] == 4350.0

    submitted = await client.post(f"/api/v1/bids/{bid_id}/submit", headers=headers)
    assert submitted.json()["data"]["status"] == "SUBMITTED"

    tabulation = await client.get(f"/api/v1/rfps/{rfp_id}/tabulation", headers=headers)
    assert tabulation.json()["data"]["lowest_bid_id"] == bid_id

    award_body = {"budget_item_id": line.json()["data"]["id"]}
    denied = await client.post(
        f"/api/v1/bids/{bid_id}/award", headers=auth_headers("contractor", project_id), json=award_body
    )
    assert denied.status_code == 403

    awarded = await client.post(f"/api/v1/bids/{bid_id}/award", headers=headers, json=award_body)
    assert awarded.status_code == 200
    assert awarded.json()["data"]["amount"] == 4350.0

    again = await client.post(f"/api/v1/bids/{bid_id}/award", headers=headers, json=award_body)
    assert again.status_code == 409

    budget_line = await client.get(f"/api/v1/budget/{line.json()['data']['id']}", headers=headers)
    assert budget_line.json()["data"]["committed_total"] == 4350.0

    awards = await client.get(f"/api/v1/awards/?rfp_id={rfp_id}", headers=headers)
    assert awards.status_code == 200
    assert [award["bid_id"] for award in awards.json()["data"]] == [bid_id]
    assert awards.json()["pagination"]["total"] == 1
    other_rfp = await client.get("/api/v1/awards/?rfp_id=other", headers=headers)
    assert other_rfp.json()["data"] == []

    export = await client.get(f"/api/v1/rfps/{rfp_id}/tabulation/export", headers=headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "bid-tabulation-Wiring-" in export.headers["content-disposition"]
    rows = export.text.splitlines()
    assert rows[0] == "spec_code,description,qty,uom,Lee Wong,lowest"
    assert rows[-1] == ",TOTAL,,,4350.0,Lee Wong"
    denied_export = await client.get(
        f"/api/v1/rfps/{rfp_id}/tabulation/export", headers=auth_headers("contractor", project_id)
    )
    assert denied_export.status_code == 403


@pytest.mark.asyncio
async def test_contact_portal_invitation(client, site, seed):
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)
    contact = await client.post(
        "/api/v1/contacts/", headers=headers, json={"name": "Sam Ortiz", "emails": ["sam@ortiz.example.com"]},
    )
    assert contact.status_code == 201, contact.json()
    contact_id = contact.json()["data"]["id"]

    invited = await client.post(f"/api/v1/contacts/{contact_id}/invite", headers=headers)
    assert invited.status_code == 200
    assert invited.json()["data"]["portal_status"] == "INVITED"

    async with database.AsyncSessionLocal() as session:
        token = (await session.get(Contact, contact_id)).invite_token

    invitee = await seed.user("sam")
    accepted = await client.post(
        "/api/v1/contacts/accept-invite", headers=auth_headers(invitee.id), json={"token": token}
    )
    assert accepted.status_code == 200
    assert accepted.json()["data"]["portal_status"] == "ACTIVE"

    tasks = await client.get("/api/v1/tasks/", headers=auth_headers(invitee.id, project_id))
    assert tasks.status_code == 200


@pytest.mark.asyncio
async def test_failed_invitation_email_is_rolled_back(client, site, monkeypatch):
    monkeypatch.setattr(email_service, "send_portal_invite", lambda *args, **kwargs: False)
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)
    contact = await client.post(
        "/api/v1/contacts/", headers=headers, json={"name": "Kim Park", "emails": ["kim@park.example.com"]},
    )
    assert contact.status_code == 201, contact.json()
    contact_id = contact.json()["data"]["id"]

    response = await client.post(f"/api/v1/contacts/{contact_id}/invite", headers=headers)
    assert response.status_code == 502
    assert response.json()["code"] == "EMAIL_DELIVERY_FAILED"

    current = await client.get(f"/api/v1/contacts/{contact_id}", headers=headers)
    assert current.json()["data"]["portal_status"] == "NONE"


@pytest.mark.asyncio
async def test_webhook_requires_secret(client, site):
    payload = {"project_id": site["project"].id, "from": "someone@example.com", "subject": "Hello"}
    response = await client.post("/api/v1/webhooks/email-inbound", json=payload)
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_WEBHOOK_SECRET"

    response = await client.post(
        "/api/v1/webhooks/email-inbound", json=payload, headers={"x-webhook-secret": "wrong"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inbound_email_from_unknown_sender_is_ignored(client, site):
    response = await client.post(
        "/api/v1/webhooks/email-inbound",
        json={"project_id": site["project"].id, "from": "stranger@example.com", "subject": "Hi"},
        headers={"x-webhook-secret": "hook-secret"},
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"matched": False}


@pytest.mark.asyncio
async def test_calendar_webhook_updates_event(client, site):
    project_id = site["project"].id
    start = utcnow() + timedelta(days=1)
    created = await client.post(
        "/api/v1/schedule/",
        headers=auth_headers("staff", project_id),
        json={"title": "Inspection", "start": start.isoformat(), "end": (start + timedelta(hours=1)).isoformat()},
    )
    event_id = created.json()["data"]["id"]

    response = await client.post(
        "/api/v1/webhooks/calendar-event",
        json={"project_id": project_id, "event_id": event_id, "external_event_id": "gcal-42", "cancelled": True},
        headers={"x-webhook-secret": "hook-secret"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CANCELED"
    assert response.json()["data"]["external_event_id"] == "gcal-42"


@pytest.mark.asyncio
async def test_unhandled_error_envelope(client, site, monkeypatch):
    async def broken(db, user_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(policy, "get_user_projects", broken)
    response = await client.get("/api/v1/auth/me", headers=auth_headers("admin"))
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


@pytest.mark.asyncio
async def test_admin_creates_user_with_access(client, site):
    project_id = site["project"].id
    body = {
        "id": "estimator-uid",
        "email": "Estimator@Example.com",
        "name": "Estimator",
        "role": "VIEWER",
        "project_id": project_id,
        "module_access": [{"module": "PROCUREMENT", "can_view": True, "can_edit": True}],
    }
    denied = await client.post("/api/v1/users/", headers=auth_headers("staff"), json=body)
    assert denied.status_code == 403

    created = await client.post("/api/v1/users/", headers=auth_headers("admin"), json=body)
    assert created.status_code == 201
    assert created.json()["data"]["email"] == "estimator@example.com"

    procurement = await client.get("/api/v1/procurement/", headers=auth_headers("estimator-uid", project_id))
    assert procurement.status_code == 200
    tasks = await client.get("/api/v1/tasks/", headers=auth_headers("estimator-uid", project_id))
    assert tasks.status_code == 200

    duplicate = await client.post("/api/v1/users/", headers=auth_headers("admin"), json=body)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "USER_EXISTS"


@pytest.mark.asyncio
async def test_failed_user_creation_leaves_no_user(client, site, monkeypatch):
    async def failing_grant(*args, **kwargs):
        raise ValidationError("Module access could not be saved")

    monkeypatch.setattr(user_service, "grant_project_access", failing_grant)
    response = await client.post(
        "/api/v1/users/",
        headers=auth_headers("admin"),
        json={"id": "half-made", "email": "half@example.com", "project_id": site["project"].id},
    )
    assert response.status_code == 400

    async with database.AsyncSessionLocal() as session:
        assert await session.get(User, "half-made") is None
        audit = await session.execute(select(AuditLog).where(AuditLog.entity_id == "half-made"))
        assert audit.scalars().all() == []

    missing_project = await client.post(
        "/api/v1/users/",
        headers=auth_headers("admin"),
        json={"id": "orphan", "email": "orphan@example.com", "project_id": "no-such-project"},
    )
    assert missing_project.status_code == 404


@pytest.mark.asyncio
async def test_permissions_update_replaces_module_flags(client, site):
    project_id = site["project"].id
    tasks = await client.get("/api/v1/tasks/", headers=auth_headers("contractor", project_id))
    assert tasks.status_code == 200

    response = await client.put(
        "/api/v1/users/contractor/permissions",
        headers=auth_headers("admin", project_id),
        json={"modules": [{"module": "SCHEDULE", "can_view": True}]},
    )
    assert response.status_code == 200
    flags = {entry["module"]: entry for entry in response.json()["data"]}
    assert flags["SCHEDULE"]["can_view"] is True
    assert flags["SCHEDULE"]["can_request"] is False
    assert not any(flags["TASKS"][key] for key in ("can_view", "can_edit", "can_upload", "can_request"))
    assert not flags["INVOICES"]["can_upload"]

    tasks = await client.get("/api/v1/tasks/", headers=auth_headers("contractor", project_id))
    assert tasks.status_code == 403
    schedule = await client.get("/api/v1/schedule/", headers=auth_headers("contractor", project_id))
    assert schedule.status_code == 200


@pytest.mark.asyncio
async def test_create_project_makes_creator_a_member(client, site):
    created = await client.post("/api/v1/projects/", headers=auth_headers("staff"), json={"name": "Harbor Lofts"})
    assert created.status_code == 201
    project_id = created.json()["data"]["id"]
    assert created.json()["data"]["owner_id"] == "staff"

    budget = await client.post(
        "/api/v1/budget/",
        headers=auth_headers("staff", project_id),
        json={"discipline": "Civil", "category": "Sitework", "item": "Grading", "est_total": 2000},
    )
    assert budget.status_code == 201
    outsider = await client.get("/api/v1/tasks/", headers=auth_headers("contractor", project_id))
    assert outsider.status_code == 403

    denied = await client.post("/api/v1/projects/", headers=auth_headers("viewer"), json={"name": "Not allowed"})
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_rfp_publish_requires_items_and_future_due_date(client, site):
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)

    empty = await client.post(
        f"/api/v1/projects/{project_id}/rfps", headers=headers,
        json={"title": "Roofing", "due_at": (utcnow() + timedelta(days=5)).isoformat()},
    )
    empty_id = empty.json()["data"]["id"]
    response = await client.post(f"/api/v1/projects/{project_id}/rfps/{empty_id}/publish", headers=headers)
    assert response.status_code == 400

    overdue = await client.post(
        f"/api/v1/projects/{project_id}/rfps", headers=headers,
        json={"title": "Siding", "due_at": (utcnow() - timedelta(days=1)).isoformat()},
    )
    overdue_id = overdue.json()["data"]["id"]
    items = await client.put(
        f"/api/v1/projects/{project_id}/rfps/{overdue_id}/items", headers=headers,
        json={"items": [{"description": "Fiber cement panels", "qty": 40}]},
    )
    assert items.status_code == 200
    response = await client.post(f"/api/v1/projects/{project_id}/rfps/{overdue_id}/publish", headers=headers)
    assert response.status_code == 400

    for rfp_id in (empty_id, overdue_id):
        current = await client.get(f"/api/v1/projects/{project_id}/rfps/{rfp_id}", headers=headers)
        assert current.json()["data"]["status"] == "DRAFT"


@pytest.mark.asyncio
async def test_rfp_item_upsert_with_unknown_id_changes_nothing(client, site):
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)
    rfp = await client.post(
        f"/api/v1/projects/{project_id}/rfps", headers=headers,
        json={"title": "Plumbing", "due_at": (utcnow() + timedelta(days=9)).isoformat()},
    )
    rfp_id = rfp.json()["data"]["id"]
    items_url = f"/api/v1/projects/{project_id}/rfps/{rfp_id}/items"
    saved = await client.put(items_url, headers=headers, json={"items": [{"description": "PEX", "qty": 500}]})
    pex = saved.json()["data"][0]

    response = await client.put(items_url, headers=headers, json={"items": [
        {"id": pex["id"], "description": "PEX-A", "qty": 600},
        {"description": "Fittings", "qty": 80},
        {"id": "ghost-item", "description": "Valves", "qty": 10},
    ]})
    assert response.status_code == 404
    assert response.json()["details"]["missing_ids"] == ["ghost-item"]

    current = await client.get(f"/api/v1/projects/{project_id}/rfps/{rfp_id}", headers=headers)
    items = current.json()["data"]["items"]
    assert [(item["description"], item["qty"]) for item in items] == [("PEX", 500.0)]


@pytest.mark.asyncio
async def test_procurement_lifecycle_endpoints(client, site):
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)
    line = await client.post(
        "/api/v1/budget/", headers=headers,
        json={"discipline": "Structural", "category": "Steel", "item": "Columns", "est_total": 6000},
    )
    line_id = line.json()["data"]["id"]
    created = await client.post(
        "/api/v1/procurement/", headers=headers,
        json={
            "material_item": "HSS columns", "quantity": 8, "unit_cost": 500,
            "order_status": "QUOTED", "budget_item_id": line_id,
        },
    )
    assert created.status_code == 201
    procurement_id = created.json()["data"]["id"]

    rejected = await client.post(
        f"/api/v1/procurement/{procurement_id}/reject", headers=headers, json={"reason": "Needs galvanizing"}
    )
    assert rejected.json()["data"]["order_status"] == "DRAFT"
    assert rejected.json()["data"]["rejection_reason"] == "Needs galvanizing"

    requoted = await client.put(
        f"/api/v1/procurement/{procurement_id}", headers=headers, json={"unit_cost": 550, "order_status": "QUOTED"}
    )
    assert requoted.json()["data"]["total_cost"] == 4400.0
    approved = await client.post(f"/api/v1/procurement/{procurement_id}/approve", headers=headers)
    assert approved.status_code == 200

    frozen = await client.put(f"/api/v1/procurement/{procurement_id}", headers=headers, json={"quantity": 80})
    assert frozen.status_code == 409
    undeletable = await client.delete(f"/api/v1/procurement/{procurement_id}", headers=headers)
    assert undeletable.status_code == 409

    skipped = await client.patch(
        f"/api/v1/procurement/{procurement_id}/status", headers=headers, json={"order_status": "DELIVERED"}
    )
    assert skipped.status_code == 409
    assert skipped.json()["code"] == "INVALID_TRANSITION"
    contractor = await client.patch(
        f"/api/v1/procurement/{procurement_id}/status",
        headers=auth_headers("contractor", project_id),
        json={"order_status": "ORDERED"},
    )
    assert contractor.status_code == 403

    ordered = await client.patch(
        f"/api/v1/procurement/{procurement_id}/status", headers=headers, json={"order_status": "ORDERED"}
    )
    assert ordered.json()["data"]["order_status"] == "ORDERED"
    budget_line = await client.get(f"/api/v1/budget/{line_id}", headers=headers)
    assert budget_line.json()["data"]["committed_total"] == 4400.0

    cancelled = await client.patch(
        f"/api/v1/procurement/{procurement_id}/status", headers=headers, json={"order_status": "CANCELLED"}
    )
    assert cancelled.json()["data"]["order_status"] == "CANCELLED"
    budget_line = await client.get(f"/api/v1/budget/{line_id}", headers=headers)
    assert budget_line.json()["data"]["committed_total"] == 0.0


@pytest.mark.asyncio
async def test_procurement_analytics_and_export(client, site, seed):
    project_id = site["project"].id
    headers = auth_headers("staff", project_id)
    vendor = await client.post(
        "/api/v1/vendors/", headers=headers, json={"name": "Metro Lumber", "email": "orders@metro.example.com"}
    )
    assert vendor.status_code == 201, vendor.json()
    for body in (
        {"material_item": "2x4 studs", "quantity": 200, "unit_cost": 4, "supplier_id": vendor.json()["data"]["id"]},
        {"material_item": "OSB sheathing", "quantity": 50, "unit_cost": 20, "priority": "HIGH"},
    ):
        created = await client.post("/api/v1/procurement/", headers=headers, json=body)
        assert created.status_code == 201

    analytics = await client.get("/api/v1/procurement/analytics?group_by=priority", headers=headers)
    assert analytics.status_code == 200
    data = analytics.json()["data"]
    assert data["summary"]["total_items"] == 2
    assert data["summary"]["total_cost"] == 1800.0
    assert data["status_breakdown"] == {"DRAFT": 2}
    assert {bucket["key"] for bucket in data["grouped"]} == {"HIGH", "MEDIUM"}

    bad_group = await client.get("/api/v1/procurement/analytics?group_by=color", headers=headers)
    assert bad_group.status_code == 400

    export = await client.get("/api/v1/procurement/export", headers=headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "attachment" in export.headers["content-disposition"]
    rows = export.text.splitlines()
    assert rows[0].split(",")[:7] == [
        "po_number", "material_item", "description", "quantity", "unit", "unit_cost", "total_cost",
    ]
    assert len(rows) == 3
    assert any("Metro Lumber" in row for row in rows[1:])

    await seed.member(site["viewer"], site["project"], module_access=[
        {"module": "PROCUREMENT", "can_view": True},
    ])
    viewer_export = await client.get("/api/v1/procurement/export", headers=auth_headers("viewer", project_id))
    assert viewer_export.status_code == 200
    header = viewer_export.text.splitlines()[0].split(",")
    assert "material_item" in header
    assert not COST_FIELDS & set(header)
