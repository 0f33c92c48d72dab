"""Catalog badge API integration tests."""

from __future__ import annotations

import uuid

import pytest

from tests.conftest import auth_headers, make_badge

NEW_BADGE = {
    "title": "PostgreSQL - Silver",
    "description": "Tuned and operated a production cluster",
    "category": "technical",
    "level": "silver",
    "metadata": {"track": "databases"},
}


@pytest.mark.asyncio
async def test_admin_creates_badge(client, admin, audit_sink):
    response = await client.post("/api/v1/catalog-badges", json=NEW_BADGE, headers=auth_headers(admin))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "active"
    assert data["version"] == 1
    assert data["metadata"] == {"track": "databases"}
    assert data["created_by"] == str(admin.user_id)
    assert audit_sink.emit.await_args.args[0] == "catalog_badge.created"


@pytest.mark.asyncio
async def test_employee_cannot_create(client, employee):
    response = await client.post("/api/v1/catalog-badges", json=NEW_BADGE, headers=auth_headers(employee))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_level_rejected(client, admin):
    body = {**NEW_BADGE, "level": "platinum"}
    response = await client.post("/api/v1/catalog-badges", json=body, headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_badge(client, db_session, employee):
    badge = await make_badge(db_session, "softskilled", "gold")

    found = await client.get(f"/api/v1/catalog-badges/{badge.id}", headers=auth_headers(employee))
    missing = await client.get(f"/api/v1/catalog-badges/{uuid.uuid4()}", headers=auth_headers(employee))

    assert found.status_code == 200
    assert found.json()["level"] == "gold"
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_edit_bumps_version(client, db_session, admin):
    badge = await make_badge(db_session)

    response = await client.put(
        f"/api/v1/catalog-badges/{badge.id}",
        json={"level": "silver", "metadata": {"track": "platform"}},
        headers=auth_headers(admin),
    )
    unchanged = await client.put(
        f"/api/v1/catalog-badges/{badge.id}", json={"level": "silver"}, headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["version"] == 2
    assert response.json()["metadata"] == {"track": "platform"}
    assert unchanged.json()["version"] == 2


@pytest.mark.asyncio
async def test_deactivate(client, db_session, admin, employee):
    badge = await make_badge(db_session)

    first = await client.post(f"/api/v1/catalog-badges/{badge.id}/deactivate", headers=auth_headers(admin))
    second = await client.post(f"/api/v1/catalog-badges/{badge.id}/deactivate", headers=auth_headers(admin))
    applied = await client.post(
        "/api/v1/badge-applications", json={"catalog_badge_id": str(badge.id)}, headers=auth_headers(employee),
    )

    assert first.status_code == 200
    assert first.json()["status"] == "inactive"
    assert first.json()["deactivated_at"] is not None
    assert second.status_code == 409
    assert second.json()["current_status"] == "inactive"
    assert applied.status_code == 400
    assert applied.json()["error"] == "catalog_badge_inactive"
