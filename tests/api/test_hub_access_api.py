"""Hub visibility through the HTTP API, from the user's and the admin's side."""

import pytest

from portal.models.access import UserReportAccess

pytestmark = pytest.mark.api


@pytest.mark.asyncio
async def test_hub_list_follows_grants(
    async_client, admin_headers, user_headers, regular_user, make_hub, make_group, make_report
):
    """Hub grant, then a report grant in another hub, as the user sees it."""
    await make_hub(name="Finance", hub_id=3, sort_order=1)
    sales = await make_hub(name="Sales", hub_id=4, sort_order=2)
    await make_report(await make_group(sales), name="Forecast", report_id=10)

    response = await async_client.get("/api/hubs", headers=user_headers)
    assert response.status_code == 200
    assert response.json() == {"hubs": []}

    response = await async_client.post(
        f"/api/admin/users/{regular_user.id}/permissions/hub",
        json={"hubId": 3, "expiresAt": None},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    hubs = (await async_client.get("/api/hubs", headers=user_headers)).json()["hubs"]
    assert [h["hubId"] for h in hubs] == [3]

    response = await async_client.post(
        f"/api/admin/users/{regular_user.id}/permissions/report",
        json={"reportId": 10},
        headers=admin_headers,
    )
    assert response.status_code == 200

    hubs = (await async_client.get("/api/hubs", headers=user_headers)).json()["hubs"]
    assert [h["hubId"] for h in hubs] == [3, 4]

    permissions = (
        await async_client.get(
            f"/api/admin/users/{regular_user.id}/permissions", headers=admin_headers
        )
    ).json()["permissions"]
    assert [h["hubId"] for h in permissions["hubs"]] == [3]
    assert [r["reportId"] for r in permissions["reports"]] == [10]


@pytest.mark.asyncio
async def test_hub_reports_endpoint(
    async_client, user_headers, regular_user, db, make_hub, make_group, make_report
):
    hub = await make_hub()
    group = await make_group(hub, name="Monthly")
    report = await make_report(group, name="Ledger")
    await make_report(group, name="Budget")
    db.add(UserReportAccess(user_id=regular_user.id, report_id=report.id))
    await db.commit()

    response = await async_client.get(f"/api/hubs/{hub.id}/reports", headers=user_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["hubId"] == hub.id
    assert [(r["reportName"], r["groupName"], r["accessLevel"]) for r in body["reports"]] == [
        ("Ledger", "Monthly", "Direct")
    ]


@pytest.mark.asyncio
async def test_hidden_hub_is_not_found(async_client, user_headers, make_hub):
    hub = await make_hub()

    response = await async_client.get(f"/api/hubs/{hub.id}", headers=user_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_admin_sees_every_active_hub(async_client, admin_headers, make_hub):
    await make_hub(name="Finance", sort_order=2)
    await make_hub(name="Sales", sort_order=1)
    await make_hub(name="Archive", is_active=False)

    hubs = (await async_client.get("/api/hubs", headers=admin_headers)).json()["hubs"]

    assert [h["hubName"] for h in hubs] == ["Sales", "Finance"]


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(async_client):
    response = await async_client.get("/api/hubs")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    body = response.json()
    assert body["error"] == "unauthorized"
    assert body["traceId"] == response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(async_client):
    response = await async_client.get(
        "/api/hubs", headers={"Authorization": "Bearer not.a.token"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_account_token_is_rejected(async_client, auth_headers, make_user):
    user = await make_user(is_expired=True)

    response = await async_client.get("/api/hubs", headers=auth_headers(user))

    assert response.status_code == 401
    assert response.json()["message"] == "User account has expired"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/api/admin/hubs"),
        ("GET", "/api/admin/users"),
        ("GET", "/api/admin/departments"),
        ("POST", "/api/admin/users/1/permissions/hub"),
        ("PUT", "/api/admin/users/1/admin"),
    ],
)
async def test_admin_routes_require_admin(async_client, user_headers, method, path):
    response = await async_client.request(method, path, headers=user_headers, json={})

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_validation_error_shape(async_client, admin_headers, regular_user):
    response = await async_client.post(
        f"/api/admin/users/{regular_user.id}/permissions/hub",
        json={"hubId": 0},
        headers=admin_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"][0]["field"] == "hubId"
    assert body["traceId"]


@pytest.mark.asyncio
async def test_grant_to_inactive_hub_is_rejected(
    async_client, admin_headers, regular_user, make_hub
):
    hub = await make_hub(is_active=False)

    response = await async_client.post(
        f"/api/admin/users/{regular_user.id}/permissions/hub",
        json={"hubId": hub.id},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_revoke_is_idempotent_over_http(
    async_client, admin_headers, regular_user, make_hub
):
    hub = await make_hub()
    await async_client.post(
        f"/api/admin/users/{regular_user.id}/permissions/hub",
        json={"hubId": hub.id},
        headers=admin_headers,
    )

    for _ in range(2):
        response = await async_client.delete(
            f"/api/admin/users/{regular_user.id}/permissions/hub/{hub.id}",
            headers=admin_headers,
        )
        assert response.status_code == 200
