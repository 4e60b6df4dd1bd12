"""HTTP API: envelopes, role gating, and the upload-to-read round trip."""

from __future__ import annotations

import pytest

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _upload(client, headers, content, filename="671_20250810_2040utc.xlsx"):
    return await client.post(
        "/api/v1/upload", headers=headers, files={"file": (filename, content, XLSX)}
    )


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_missing_token_is_401_envelope(client):
    r = await client.get("/api/v1/snapshots")
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "UNAUTHORIZED"
    assert "timestamp" in body["metadata"]


@pytest.mark.asyncio
async def test_invalid_token_is_401(client):
    r = await client.get("/api/v1/snapshots", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_viewer_cannot_use_admin_routes(client, viewer_headers, make_row, make_workbook):
    r = await _upload(client, viewer_headers, make_workbook([make_row("1")]))
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"
    r = await client.get("/api/v1/admin/users", headers=viewer_headers)
    assert r.status_code == 403
    r = await client.get("/api/v1/uploads", headers=viewer_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_token_issue(client, admin_headers):
    bad = await client.post("/api/v1/auth/token", json={"username": "admin", "password": "wrong1234"})
    assert bad.status_code == 401

    ok = await client.post("/api/v1/auth/token", json={"username": "admin", "password": "secret123"})
    assert ok.status_code == 200
    data = ok.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "ADMIN"

    r = await client.get(
        "/api/v1/snapshots", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_upload_then_read(client, admin_headers, viewer_headers, make_row, make_workbook):
    content = make_workbook(
        [
            make_row("1", name="Alice", power=30_000_000, merits=500_000),
            make_row("2", name="Bob", alliance_tag="FLAs", power=10_000_000),
            make_row("3", name="Cara", alliance_tag="XYZ", power=1_000_000),
        ]
    )
    r = await _upload(client, admin_headers, content)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["data"]["snapshot"]["rows_processed"] == 3
    assert body["data"]["upload"]["status"] == "COMPLETED"

    r = await client.get("/api/v1/players", headers=viewer_headers, params={"alliance": "managed"})
    assert r.status_code == 200
    assert {p["lord_id"] for p in r.json()["data"]["players"]} == {"1", "2"}

    r = await client.get("/api/v1/players/1", headers=viewer_headers)
    assert r.status_code == 200
    assert r.json()["data"]["player"]["current_name"] == "Alice"

    r = await client.get("/api/v1/players/compare", headers=viewer_headers, params={"ids": "1,2"})
    assert r.status_code == 200
    assert len(r.json()["data"]) == 2

    r = await client.get(
        "/api/v1/leaderboard", headers=viewer_headers, params={"limit": 2, "page": 2}
    )
    assert r.status_code == 200
    payload = r.json()
    assert [p["lord_id"] for p in payload["data"]["players"]] == ["3"]
    assert payload["metadata"]["pagination"]["total"] == 3
    assert payload["metadata"]["pagination"]["has_previous_page"] is True

    r = await client.get("/api/v1/leaderboard/alliances", headers=viewer_headers)
    assert r.status_code == 200
    assert r.json()["data"]["total_alliances"] == 3

    r = await client.post(
        "/api/v1/leaderboard/bulk-export",
        headers=viewer_headers,
        json={"playerIds": ["1"], "format": "basic"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["summary"]["total_players"] == 1

    r = await client.get("/api/v1/merits", headers=viewer_headers)
    assert r.status_code == 200
    assert r.json()["data"]["top_merits"][0]["player_id"] == "1"

    r = await client.get("/api/v1/analytics/power-distribution", headers=viewer_headers)
    assert r.status_code == 200
    assert r.json()["data"]["total_players"] == 3

    r = await client.get("/api/v1/uploads", headers=admin_headers)
    assert r.json()["metadata"]["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_bad_filename_rejected_without_upload_row(client, admin_headers, make_row, make_workbook):
    r = await _upload(client, admin_headers, make_workbook([make_row("1")]), filename="players.xlsx")
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = await client.get("/api/v1/uploads", headers=admin_headers)
    assert r.json()["data"] == []


@pytest.mark.asyncio
async def test_unknown_player_is_404(client, viewer_headers):
    r = await client.get("/api/v1/players/nobody", headers=viewer_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_short_search_query_is_400(client, viewer_headers):
    r = await client.get("/api/v1/search", headers=viewer_headers, params={"q": "a"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_query_validation_uses_error_envelope(client, viewer_headers):
    r = await client.get("/api/v1/leaderboard", headers=viewer_headers, params={"limit": 0})
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"][0]["field"].endswith("limit")


@pytest.mark.asyncio
async def test_inactivity_without_snapshots_is_404(client, viewer_headers):
    r = await client.get("/api/v1/analytics/inactivity", headers=viewer_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_admin_user_management(client, admin_headers):
    weak = await client.post(
        "/api/v1/admin/users",
        headers=admin_headers,
        json={"username": "carol", "password": "short"},
    )
    assert weak.status_code == 400

    created = await client.post(
        "/api/v1/admin/users",
        headers=admin_headers,
        json={"username": "carol", "password": "longer123", "role": "viewer"},
    )
    assert created.status_code == 201
    user = created.json()["data"]
    assert user["role"] == "VIEWER"

    dup = await client.post(
        "/api/v1/admin/users",
        headers=admin_headers,
        json={"username": "carol", "password": "longer123"},
    )
    assert dup.status_code == 400

    patched = await client.patch(
        f"/api/v1/admin/users/{user['id']}",
        headers=admin_headers,
        json={"role": "ADMIN", "is_active": False},
    )
    assert patched.status_code == 200
    assert patched.json()["data"]["role"] == "ADMIN"
    assert patched.json()["data"]["is_active"] is False

    listed = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert {u["username"] for u in listed.json()["data"]} == {"admin", "carol"}

    missing = await client.patch("/api/v1/admin/users/999", headers=admin_headers, json={"role": "ADMIN"})
    assert missing.status_code == 404
