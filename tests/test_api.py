"""End-to-end tests for the HTTP API."""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from shiftpro.api.v1.deps import get_services
from shiftpro.main import app
from shiftpro.services.container import ServiceContainer

BOSS = "/api/v1/boss"
EMP = "/api/v1/employee/vacation"


async def _publish(client: AsyncClient, headers, vtype="flexible", days=4, month=8):
    resp = await client.post(
        f"{BOSS}/vacation/publish",
        json={"type": vtype, "allowed_days": days, "year": 2025, "month": month},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


# ── Public ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["db"] is True
    assert resp.json()["redis"] is False


@pytest.mark.asyncio
async def test_month_grid(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/calendar/2025/8/grid")
    assert resp.status_code == 200
    data = resp.json()
    assert data["month"] == "2025-08"
    assert data["weeks_in_month"] == 6
    assert len(data["cells"]) == 42
    assert data["cells"][0]["date"] == "2025-07-27"
    assert data["cells"][0]["week_of_month"] is None
    assert data["cells"][5]["week_of_month"] == 1


@pytest.mark.asyncio
async def test_invalid_month_rejected(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/calendar/2025/13/grid")
    assert resp.status_code == 422
    assert resp.json()["error"]["reason"] == "invalid_month"
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_week_range(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/calendar/week-range", params={"date": "2025-08-06"})
    assert resp.status_code == 200
    assert resp.json()["display"] == "8/4-8/10"

    bad = await async_client.get("/api/v1/calendar/week-range", params={"date": "2025-8-6"})
    assert bad.status_code == 422
    assert bad.json()["error"]["reason"] == "malformed_date_key"


@pytest.mark.asyncio
async def test_weekly_stats_endpoint(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/calendar/2025/8/weekly-stats",
        json={"dates": ["2025-08-04", "2025-08-01", "junk", "2025-09-01", "2025-08-05"]},
    )
    assert resp.status_code == 200
    assert resp.json()["weeks"] == [
        {"week": 1, "count": 1, "range": "8/1-8/2"},
        {"week": 2, "count": 2, "range": "8/3-8/9"},
    ]


# ── Auth ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_missing_token_is_401(async_client: AsyncClient):
    resp = await async_client.get(f"{EMP}/2025/8")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_non_bearer_scheme_is_401(async_client: AsyncClient, employee_headers):
    token = employee_headers["Authorization"].removeprefix("Bearer ")
    resp = await async_client.get(f"{EMP}/2025/8", headers={"Authorization": f"Basic {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_roles_are_enforced(async_client: AsyncClient, boss_headers, employee_headers):
    resp = await async_client.post(
        f"{BOSS}/vacation/publish",
        json={"type": "monthly", "allowed_days": 5, "year": 2025, "month": 8},
        headers=employee_headers,
    )
    assert resp.status_code == 403
    resp = await async_client.get(f"{EMP}/2025/8", headers=boss_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_token_from_cookie(async_client: AsyncClient, employee_headers):
    token = employee_headers["Authorization"].removeprefix("Bearer ")
    async_client.cookies.set("access_token", token)
    resp = await async_client.get(f"{EMP}/2025/8")
    assert resp.status_code == 200


# ── Boss ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_publish_then_lookup(async_client: AsyncClient, boss_headers):
    """Monthly 5 days stores weekly 2 and shows up as published."""
    body = await _publish(async_client, boss_headers, "monthly", 5)
    assert body["event"] == "published"
    assert body["limits"]["monthly_limit"] == 5
    assert body["limits"]["weekly_limit"] == 2

    lookup = await async_client.get("/api/v1/limits/2025/8", headers=boss_headers)
    assert lookup.json()["state"] == "published"

    listed = await async_client.get("/api/v1/limits", headers=boss_headers)
    assert [l["month"] for l in listed.json()] == [8]

    again = await _publish(async_client, boss_headers, "monthly", 6)
    assert again["event"] == "updated"
    assert again["state"] == "republished"


@pytest.mark.asyncio
async def test_draft_and_unpublish(async_client: AsyncClient, boss_headers):
    resp = await async_client.post(
        f"{BOSS}/vacation/draft",
        json={"type": "weekly", "allowed_days": 2, "year": 2025, "month": 9},
        headers=boss_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["state"] == "drafted"
    lookup = await async_client.get("/api/v1/limits/2025/9", headers=boss_headers)
    assert lookup.json()["state"] == "draft_exists"

    await _publish(async_client, boss_headers, month=9)
    resp = await async_client.delete(f"{BOSS}/vacation/2025/9", headers=boss_headers)
    assert resp.json()["event"] == "deleted"
    assert resp.json()["state"] == "unpublished"
    lookup = await async_client.get("/api/v1/limits/2025/9", headers=boss_headers)
    assert lookup.json()["state"] == "no_policy"


@pytest.mark.asyncio
async def test_status_and_schedule(async_client: AsyncClient, boss_headers):
    status = await async_client.get(f"{BOSS}/2025/8/status", headers=boss_headers)
    assert status.json()["vacation_published"] is False

    resp = await async_client.post(
        f"{BOSS}/schedule/publish",
        json={"mode": "manual", "year": 2025, "month": 8, "dates": ["2025-08-04"]},
        headers=boss_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["schedule_published"] is True

    resp = await async_client.delete(f"{BOSS}/schedule/2025/8", headers=boss_headers)
    assert resp.json()["schedule_published"] is False


@pytest.mark.asyncio
async def test_clear_limits_and_flush(async_client: AsyncClient, boss_headers):
    await _publish(async_client, boss_headers, month=8)
    await _publish(async_client, boss_headers, month=9)
    resp = await async_client.post(f"{BOSS}/limits/clear", headers=boss_headers)
    assert resp.json()["cleared_months"] == ["2025-08", "2025-09"]

    flush = await async_client.post(f"{BOSS}/sync/flush", headers=boss_headers)
    assert flush.json() == {"delivered": 0, "pending": 0}


@pytest.mark.asyncio
async def test_concurrent_boss_requests_keep_their_month(yielding_kv, today, boss_headers):
    """Withdrawing August while September's status is read removes August only."""
    services = ServiceContainer(yielding_kv, today=today)

    async def _override_get_services() -> ServiceContainer:
        return services

    app.dependency_overrides[get_services] = _override_get_services
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await _publish(client, boss_headers, month=8)
            await _publish(client, boss_headers, month=9)
            deleted, status = await asyncio.gather(
                client.delete(f"{BOSS}/vacation/2025/8", headers=boss_headers),
                client.get(f"{BOSS}/2025/9/status", headers=boss_headers),
            )
    finally:
        app.dependency_overrides.pop(get_services, None)
        await services.close()

    assert deleted.json()["month"] == "2025-08"
    assert status.json()["month"] == "2025-09"
    assert status.json()["vacation_published"] is True
    assert not await services.store.exists(2025, 8)
    assert await services.store.exists(2025, 9)


# ── Employee ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_employee_waits_for_publication(async_client: AsyncClient, employee_headers):
    view = await async_client.get(f"{EMP}/2025/8", headers=employee_headers)
    assert view.status_code == 200
    assert view.json()["is_policy_published"] is False
    assert view.json()["monthly_limit"] == 8

    resp = await async_client.post(f"{EMP}/2025/8/edit", headers=employee_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["reason"] == "awaiting_publication"

    resp = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "2025-08-04"}, headers=employee_headers
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_employee_selection_flow(async_client: AsyncClient, boss_headers, employee_headers):
    await _publish(async_client, boss_headers, "flexible", 4)

    view = await async_client.get(f"{EMP}/2025/8", headers=employee_headers)
    assert view.json()["vacation_mode"] == "monthly"

    edit = await async_client.post(f"{EMP}/2025/8/edit", headers=employee_headers)
    assert edit.json()["edit_mode"] is True

    for day in ("2025-08-04", "2025-08-05", "2025-08-06"):
        resp = await async_client.post(f"{EMP}/2025/8/toggle", json={"date": day}, headers=employee_headers)
        assert resp.status_code == 200
        assert resp.json()["added"] is True

    resp = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "2025-08-12"}, headers=employee_headers
    )
    body = resp.json()
    assert body["monthly_remaining"] == 0
    assert body["weekly_remaining"] is None
    assert body["vacation"]["weekly_stats"] == {"2": 3, "3": 1}

    full = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "2025-08-13"}, headers=employee_headers
    )
    assert full.status_code == 409
    assert full.json()["error"]["reason"] == "monthly_limit_reached"

    submit = await async_client.post(f"{EMP}/2025/8/submit", headers=employee_headers)
    assert submit.status_code == 200
    assert submit.json()["is_submitted"] is True

    again = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "2025-08-20"}, headers=employee_headers
    )
    assert again.status_code == 409
    assert again.json()["error"]["reason"] == "already_submitted"

    cleared = await async_client.delete(f"{EMP}/2025/8", headers=employee_headers)
    assert cleared.json()["selected_dates"] == []
    assert cleared.json()["is_submitted"] is False


@pytest.mark.asyncio
async def test_weekly_policy_caps_each_week(async_client: AsyncClient, boss_headers, employee_headers):
    await _publish(async_client, boss_headers, "weekly", 2)
    for day in ("2025-08-04", "2025-08-05"):
        resp = await async_client.post(f"{EMP}/2025/8/toggle", json={"date": day}, headers=employee_headers)
        assert resp.status_code == 200

    resp = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "2025-08-06"}, headers=employee_headers
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == {
        "reason": "weekly_limit_reached",
        "message": "Week 2 already has the maximum of 2 vacation days",
        "week": 2,
        "limit": 2,
    }


@pytest.mark.asyncio
async def test_tightened_policy_blocks_submit(
    async_client: AsyncClient, boss_headers, employee_headers, services: ServiceContainer
):
    await _publish(async_client, boss_headers, "flexible", 8)
    for day in ("2025-08-04", "2025-08-05"):
        await async_client.post(f"{EMP}/2025/8/toggle", json={"date": day}, headers=employee_headers)

    await _publish(async_client, boss_headers, "weekly", 1)
    session = await services.employee_session("emp-1")
    assert session.last_validation.violating_weeks == [2]

    resp = await async_client.post(f"{EMP}/2025/8/submit", headers=employee_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["reason"] == "weekly_limit_exceeded"
    assert resp.json()["error"]["weeks"] == [2]


@pytest.mark.asyncio
async def test_malformed_toggle_date(async_client: AsyncClient, boss_headers, employee_headers):
    await _publish(async_client, boss_headers)
    resp = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "08/04/2025"}, headers=employee_headers
    )
    assert resp.status_code == 422

    resp = await async_client.post(
        f"{EMP}/2025/8/toggle", json={"date": "2025-09-04"}, headers=employee_headers
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["reason"] == "date_outside_month"


@pytest.mark.asyncio
async def test_employees_have_separate_selections(
    async_client: AsyncClient, boss_headers, employee_headers
):
    from shiftpro.core.security import ROLE_EMPLOYEE, create_access_token

    other = {"Authorization": f"Bearer {create_access_token('emp-2', ROLE_EMPLOYEE)}"}
    await _publish(async_client, boss_headers)
    await async_client.post(f"{EMP}/2025/8/toggle", json={"date": "2025-08-04"}, headers=employee_headers)

    view = await async_client.get(f"{EMP}/2025/8", headers=other)
    assert view.json()["selected_dates"] == []
