"""Tests for api/api/routers/robots.py"""

from __future__ import annotations

import pytest
from httpx import AsyncClient


class TestListRobots:
    @pytest.mark.asyncio
    async def test_org_user_sees_own_fleet(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.get("/api/v1/robots", headers=user_headers(seeded.org_id))

        assert resp.status_code == 200
        assert [item["robot_code"] for item in resp.json()] == ["WR-0001"]
        assert resp.json()[0]["license_status"] == "ACTIVE"

    @pytest.mark.asyncio
    async def test_superadmin_sees_everything(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.get("/api/v1/robots", headers=user_headers(None, [], is_superadmin=True))

        items = {item["robot_code"]: item for item in resp.json()}
        assert set(items) == {"WR-0001", "WR-0002"}
        assert items["WR-0002"]["license_status"] == "REVOKED"

    @pytest.mark.asyncio
    async def test_requires_manage_robots(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.get("/api/v1/robots", headers=user_headers(seeded.org_id, ["ASSIGN_COURSE"]))

        assert resp.status_code == 403


class TestRobotLicenseStatus:
    @pytest.mark.asyncio
    async def test_status_of_most_recent_license(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.get(
            f"/api/v1/robots/{seeded.robot_id}/license-status",
            headers=user_headers(seeded.org_id),
        )

        assert resp.status_code == 200
        assert resp.json()["license_id"] == seeded.license_id

    @pytest.mark.asyncio
    async def test_unlicensed_robot_is_404(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.get(
            f"/api/v1/robots/{seeded.other_robot_id}/license-status",
            headers=user_headers(seeded.other_org_id),
        )

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_cross_org_is_403(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.get(
            f"/api/v1/robots/{seeded.robot_id}/license-status",
            headers=user_headers(seeded.other_org_id),
        )

        assert resp.status_code == 403


class TestRefreshAndLock:
    @pytest.mark.asyncio
    async def test_request_refresh(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.post(f"/api/v1/robots/{seeded.robot_id}/refresh", headers=user_headers(seeded.org_id))

        assert resp.status_code == 200
        assert resp.json() == {"robot_id": seeded.robot_id, "refresh_required": True}

    @pytest.mark.asyncio
    async def test_lock_revokes_active_license(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.post(f"/api/v1/robots/{seeded.robot_id}/lock", headers=user_headers(seeded.org_id))

        assert resp.json() == {"robot_id": seeded.robot_id, "locked": True, "revoked_license_id": seeded.license_id}

        again = await client.post(f"/api/v1/robots/{seeded.robot_id}/lock", headers=user_headers(seeded.org_id))
        assert again.json()["revoked_license_id"] is None

    @pytest.mark.asyncio
    async def test_unknown_robot_is_404(self, client: AsyncClient, seeded, user_headers) -> None:
        resp = await client.post("/api/v1/robots/9999/lock", headers=user_headers(seeded.org_id))

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Robot not found"
