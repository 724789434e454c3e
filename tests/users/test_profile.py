"""Tests for profile management."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from habitquest.db.models import Habit, UserProfile
from tests.conftest import auth_headers, create_habit


class TestProfile:
    @pytest.mark.asyncio
    async def test_created_on_first_request(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/users/me")
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "hero@example.com"
        assert data["level"] == 1
        assert data["experience"] == 0
        assert data["experience_to_next"] == 100
        assert data["currency"] == 0
        assert data["stats"] == {"strength": 10, "intelligence": 10, "discipline": 10, "social": 10}

    @pytest.mark.asyncio
    async def test_same_subject_same_profile(self, client: AsyncClient):
        first = (await client.get("/api/v1/users/me", headers=auth_headers())).json()
        second = (await client.get("/api/v1/users/me", headers=auth_headers(email=None))).json()
        assert first["id"] == second["id"]

    @pytest.mark.asyncio
    async def test_update_identity_fields(self, authed_client: AsyncClient):
        response = await authed_client.patch("/api/v1/users/me", json={
            "first_name": "Sung",
            "character_class": "Assassin",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["first_name"] == "Sung"
        assert data["character_class"] == "Assassin"

    @pytest.mark.asyncio
    async def test_progression_fields_not_writable(self, authed_client: AsyncClient):
        response = await authed_client.patch("/api/v1/users/me", json={"level": 99})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_profile_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_delete_cascades(self, authed_client: AsyncClient, db_session):
        habit = await create_habit(authed_client)
        await authed_client.post(f"/api/v1/habits/{habit['id']}/complete")

        response = await authed_client.delete("/api/v1/users/me")

        assert response.status_code == 204
        profiles = await db_session.execute(select(func.count(UserProfile.id)))
        habits = await db_session.execute(select(func.count(Habit.id)))
        assert profiles.scalar_one() == 0
        assert habits.scalar_one() == 0
