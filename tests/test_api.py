"""HTTP surface: authentication, tenant scoping, status codes."""

from httpx import AsyncClient

from helpers import ADMIN_ID, bearer


ADMIN = bearer(ADMIN_ID)
MEMBER = bearer("19")
ROOT = bearer("99", isSuperAdmin="true")

NEW_GRANT = {"user_id": "19", "role_id": "pm", "context_type": "project", "context_id": "47"}


async def _create(client: AsyncClient, **overrides) -> dict:
    response = await client.post("/assignments", json={**NEW_GRANT, **overrides}, headers=ADMIN)
    assert response.status_code == 201, response.text
    return response.json()


async def test_root_and_health(async_client: AsyncClient) -> None:
    root = await async_client.get("/")
    health = await async_client.get("/health")

    assert root.status_code == 200
    assert root.json()["status"] == "online"
    assert health.json() == {"status": "healthy"}


async def test_missing_or_malformed_token_rejected(async_client: AsyncClient) -> None:
    missing = await async_client.get("/access/check", params={"resource_type": "project", "resource_id": "47"})
    malformed = await async_client.get(
        "/access/check",
        params={"resource_type": "project", "resource_id": "47"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    no_claims = await async_client.get(
        "/access/check",
        params={"resource_type": "project", "resource_id": "47"},
        headers=bearer(""),
    )

    assert missing.status_code in (401, 403)
    assert malformed.status_code == 401
    assert no_claims.status_code == 401


async def test_assignment_crud_round(async_client: AsyncClient) -> None:
    created = await _create(async_client, trade_type="electrical", is_primary=True)
    assignment_id = created["id"]
    assert created["org_id"] == "10"
    assert created["status"] == "active"
    assert created["created_by"] == ADMIN_ID

    fetched = await async_client.get(f"/assignments/{assignment_id}", headers=ADMIN)
    assert fetched.status_code == 200
    assert fetched.json()["trade_type"] == "electrical"

    patched = await async_client.patch(
        f"/assignments/{assignment_id}", json={"role_id": "foreman"}, headers=ADMIN
    )
    assert patched.status_code == 200
    assert patched.json()["role_id"] == "foreman"

    deleted = await async_client.delete(f"/assignments/{assignment_id}", headers=ADMIN)
    again = await async_client.delete(f"/assignments/{assignment_id}", headers=ADMIN)
    assert deleted.status_code == 204
    assert again.status_code == 204

    gone = await async_client.get(f"/assignments/{assignment_id}", headers=ADMIN)
    assert gone.status_code == 404
    assert gone.json()["error"] == "not_found"


async def test_list_assignments_with_filters(async_client: AsyncClient) -> None:
    await _create(async_client)
    await _create(async_client, user_id="21", context_id="48")

    response = await async_client.get(
        "/assignments", params={"user_id": "21", "page_size": 500}, headers=ADMIN
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["page_size"] == 100
    assert body["items"][0]["context_id"] == "48"


async def test_error_statuses(async_client: AsyncClient) -> None:
    await _create(async_client)

    duplicate = await async_client.post("/assignments", json=NEW_GRANT, headers=ADMIN)
    foreign_context = await async_client.post(
        "/assignments", json={**NEW_GRANT, "context_id": "60"}, headers=ADMIN
    )
    bad_type = await async_client.post(
        "/assignments", json={**NEW_GRANT, "context_type": "department"}, headers=ADMIN
    )
    bad_window = await async_client.post(
        "/assignments",
        json={**NEW_GRANT, "start_date": "2025-06-10", "end_date": "2025-06-01"},
        headers=ADMIN,
    )
    missing_user = await async_client.post(
        "/assignments", json={**NEW_GRANT, "user_id": "missing"}, headers=ADMIN
    )

    assert duplicate.status_code == 409
    assert foreign_context.status_code == 403
    assert foreign_context.json()["error"] == "cross_tenant"
    assert bad_type.status_code == 400
    assert "context_type" in bad_type.json()
    assert bad_window.status_code == 400
    assert missing_user.status_code == 404


async def test_non_admin_cannot_manage_assignments(async_client: AsyncClient) -> None:
    response = await async_client.post("/assignments", json=NEW_GRANT, headers=MEMBER)
    listing = await async_client.get("/assignments", headers=MEMBER)

    assert response.status_code == 403
    assert listing.status_code == 403


async def test_admin_naming_other_org_is_cross_tenant(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/assignments", json={**NEW_GRANT, "user_id": "30", "context_id": "60", "org_id": "20"}, headers=ADMIN
    )

    assert response.status_code == 403
    assert response.json()["error"] == "cross_tenant"


async def test_super_admin_acts_in_any_org(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/assignments",
        json={"user_id": "30", "role_id": "other-inspector", "context_type": "project", "context_id": "60", "org_id": "20"},
        headers=ROOT,
    )

    assert response.status_code == 201, response.text
    assert response.json()["org_id"] == "20"


async def test_bulk_transfer_and_reassign(async_client: AsyncClient) -> None:
    bulk = await async_client.post(
        "/assignments/bulk",
        json={"user_ids": ["19", "21"], "role_id": "foreman", "context_type": "project", "context_id": "47"},
        headers=ADMIN,
    )
    assert bulk.status_code == 201
    assert len(bulk.json()) == 2

    transfer = await async_client.post(
        "/assignments/transfer",
        json={
            "old_context": {"context_type": "project", "context_id": "47"},
            "new_context": {"context_type": "project", "context_id": "48"},
        },
        headers=ADMIN,
    )
    assert transfer.status_code == 200
    assert transfer.json()["transferred"] == 2

    at_48 = await async_client.get("/assignments/contexts/project/48", headers=ADMIN)
    assert {a["user_id"] for a in at_48.json()["assignments"]} == {"19", "21"}

    reassign = await async_client.post(
        "/assignments/reassign", json={"from_user_id": "19", "to_user_id": "21"}, headers=ADMIN
    )
    assert reassign.status_code == 409


async def test_access_check_for_self_and_others(async_client: AsyncClient) -> None:
    await _create(async_client, context_type="location", context_id="6")
    params = {"resource_type": "project", "resource_id": "47"}

    own = await async_client.get("/access/check", params=params, headers=MEMBER)
    assert own.status_code == 200
    assert own.json()["granted"] is True
    assert own.json()["reason"] == "inherited_assignment"

    peeking = await async_client.get("/access/check", params={**params, "user_id": "21"}, headers=MEMBER)
    assert peeking.status_code == 403

    by_admin = await async_client.get("/access/check", params={**params, "user_id": "19"}, headers=ADMIN)
    assert by_admin.json()["granted"] is True

    foreign_user = await async_client.get("/access/check", params={**params, "user_id": "30"}, headers=ADMIN)
    assert foreign_user.status_code == 404

    bad_type = await async_client.get(
        "/access/check", params={"resource_type": "phase", "resource_id": "1"}, headers=MEMBER
    )
    assert bad_type.status_code == 400


async def test_accessible_resources(async_client: AsyncClient) -> None:
    await _create(async_client, context_type="location", context_id="6")

    mine = await async_client.get("/access/resources/project", headers=MEMBER)
    everything = await async_client.get("/access/resources/project", headers=ROOT)

    assert mine.json() == {"user_id": "19", "resource_type": "project", "resource_ids": ["47", "48"]}
    assert everything.json()["resource_ids"] == ["47", "48", "50", "60"]


async def test_user_summary_and_contexts(async_client: AsyncClient) -> None:
    await _create(async_client, is_primary=True)
    await _create(async_client, context_type="location", context_id="6")

    summary = await async_client.get("/users/19/assignments", headers=MEMBER)
    contexts = await async_client.get("/users/19/contexts", params={"context_type": "project"}, headers=MEMBER)
    other = await async_client.get("/users/21/assignments", headers=MEMBER)

    assert summary.status_code == 200
    assert summary.json()["total_assignments"] == 2
    assert summary.json()["assignments_by_type"] == {"project": 1, "location": 1}
    assert contexts.json() == [
        {"context_type": "project", "context_id": "47", "role_id": "pm", "is_primary": True}
    ]
    assert other.status_code == 403
