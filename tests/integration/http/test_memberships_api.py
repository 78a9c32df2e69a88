from __future__ import annotations

import sqlite3
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from src.domain.value_objects.role import Role
from src.infrastructure.db.base import Base
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.interfaces.http.main import create_app
from tests.conftest import count_memberships, seed_memberships


async def _seed(app, tenant_id):
    return await seed_memberships(
        app.state.session_factory,
        tenant_id,
        {
            "owner": (Role.OWNER, True),
            "admin": (Role.ADMIN, True),
            "staff": (Role.STAFF, True),
        },
    )


def _headers(membership) -> dict[str, str]:
    return {"X-Actor-ID": str(membership.user_id)}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_requests_without_actor_are_rejected(client, tenant_id):
    resp = await client.get(f"/api/v1/tenants/{tenant_id}/members")
    assert resp.status_code == 401
    assert resp.json()["code"] == "auth_error"

    resp = await client.get(
        f"/api/v1/tenants/{tenant_id}/members", headers={"X-Actor-ID": "not-a-uuid"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_add_member_and_list(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    user_id = uuid4()
    base = f"/api/v1/tenants/{tenant_id}/members"

    resp = await client.post(
        base, json={"user_id": str(user_id), "role": "VIEWER"}, headers=_headers(seeded["owner"])
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["user_id"] == str(user_id)
    assert body["role"] == "VIEWER"
    assert body["is_active"] is True

    resp = await client.get(base, params={"role": "VIEWER"}, headers=_headers(seeded["owner"]))
    assert resp.status_code == 200
    assert [m["user_id"] for m in resp.json()] == [str(user_id)]

    resp = await client.get(base, headers=_headers(seeded["owner"]))
    assert len(resp.json()) == 4


@pytest.mark.asyncio
async def test_add_owner_role_is_unprocessable(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    resp = await client.post(
        f"/api/v1/tenants/{tenant_id}/members",
        json={"user_id": str(uuid4()), "role": "OWNER"},
        headers=_headers(seeded["owner"]),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_role_assignment"


@pytest.mark.asyncio
async def test_owner_role_cannot_be_changed(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    resp = await client.patch(
        f"/api/v1/tenants/{tenant_id}/members/{seeded['owner'].id}",
        json={"role": "ADMIN"},
        headers=_headers(seeded["admin"]),
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "owner_protected"

    resp = await client.delete(
        f"/api/v1/tenants/{tenant_id}/members/{seeded['owner'].id}",
        headers=_headers(seeded["admin"]),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_last_admin_is_protected(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    url = f"/api/v1/tenants/{tenant_id}/members/{seeded['admin'].id}"

    resp = await client.patch(url, json={"role": "STAFF"}, headers=_headers(seeded["owner"]))
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "last_admin_protected"
    assert body["details"] == {"membership_id": str(seeded["admin"].id)}

    resp = await client.delete(url, headers=_headers(seeded["owner"]))
    assert resp.status_code == 409
    assert "Retry-After" not in resp.headers


@pytest.mark.asyncio
async def test_update_role_and_unknown_membership(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    base = f"/api/v1/tenants/{tenant_id}/members"

    resp = await client.patch(
        f"{base}/{seeded['staff'].id}", json={"role": "ADMIN"}, headers=_headers(seeded["owner"])
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "ADMIN"

    resp = await client.patch(
        f"{base}/{uuid4()}", json={"role": "STAFF"}, headers=_headers(seeded["owner"])
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_remove_member_writes_audit_log(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    staff = seeded["staff"]
    url = f"/api/v1/tenants/{tenant_id}/members/{staff.id}"

    resp = await client.delete(url, headers=_headers(seeded["owner"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["changed"] is True
    assert body["membership"]["is_active"] is False

    resp = await client.delete(url, headers=_headers(seeded["owner"]))
    assert resp.status_code == 200
    assert resp.json()["changed"] is False

    factory = app.state.session_factory
    assert await count_memberships(factory, tenant_id, is_active=False) == 1

    uow = SQLAlchemyUnitOfWork(factory)
    async with uow:
        entries = await uow.audit_logs.list_for_entity(tenant_id, staff.id)
    assert [e.action for e in entries] == ["USER_REMOVED_FROM_TENANT"]
    assert entries[0].actor_id == seeded["owner"].user_id


@pytest.mark.asyncio
async def test_member_audit_logs_endpoint(client, app, tenant_id):
    seeded = await _seed(app, tenant_id)
    staff = seeded["staff"]
    base = f"/api/v1/tenants/{tenant_id}/members/{staff.id}"
    headers = {**_headers(seeded["owner"]), "User-Agent": "erp-web/5.0"}

    resp = await client.patch(base, json={"role": "VIEWER"}, headers=headers)
    assert resp.status_code == 200
    resp = await client.delete(base, headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"{base}/audit-logs", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert [e["action"] for e in body["items"]] == [
        "USER_ROLE_CHANGED",
        "USER_REMOVED_FROM_TENANT",
    ]
    first = body["items"][0]
    assert first["entity_type"] == "TENANT_MEMBERSHIP"
    assert first["user_agent"] == "erp-web/5.0"
    assert first["ip_address"] == "127.0.0.1"
    assert first["actor_id"] == str(seeded["owner"].user_id)

    resp = await client.get(f"{base}/audit-logs", params={"limit": 1, "offset": 1}, headers=headers)
    assert [e["action"] for e in resp.json()["items"]] == ["USER_REMOVED_FROM_TENANT"]

    resp = await client.get(
        f"/api/v1/tenants/{tenant_id}/members/{uuid4()}/audit-logs", headers=headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_locked_database_returns_retryable_503(test_settings, tenant_id):
    settings = test_settings.model_copy(update={"db_lock_timeout_seconds": 0.2})
    app = create_app(settings=settings)
    engine = app.state.engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    seeded = await _seed(app, tenant_id)

    blocker = sqlite3.connect(engine.url.database, isolation_level=None)
    blocker.execute("BEGIN IMMEDIATE")
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            resp = await client.delete(
                f"/api/v1/tenants/{tenant_id}/members/{seeded['staff'].id}",
                headers=_headers(seeded["owner"]),
            )
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()
        await engine.dispose()

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "1"
    assert resp.json()["code"] == "storage_error"


@pytest.mark.asyncio
async def test_docs_hidden_in_production(test_settings):
    prod = create_app(settings=test_settings.model_copy(update={"environment": "production"}))
    dev = create_app(settings=test_settings)
    try:
        for app, expected in ((prod, 404), (dev, 200)):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://testserver") as client:
                resp = await client.get("/openapi.json")
            assert resp.status_code == expected
    finally:
        await prod.state.engine.dispose()
        await dev.state.engine.dispose()
