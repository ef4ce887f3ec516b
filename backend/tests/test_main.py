"""
Tests for the error-to-HTTP mapping and auth dependencies.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from api.dependencies import (
    get_album_service,
    get_band_service,
    get_event_service,
    get_token_manager,
)
from services.auth import SessionTokenManager, create_access_token, create_refresh_token
from services.errors import (
    AuthFailureReason,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
)


class TestErrorPayloads:
    """Serialised form of each error."""

    def test_not_found(self):
        error = NotFoundError("Band", 5)
        assert error.status == 404
        assert error.to_dict() == {
            "error": "not_found",
            "detail": "Band not found",
            "context": {"entity": "Band", "id": 5},
        }

    def test_conflict_context(self):
        error = ConflictError("stale", entity="Album", entity_id=2, expected_version=3)
        assert error.status == 409
        assert error.to_dict()["context"] == {"entity": "Album", "id": 2, "expected_version": 3}

    def test_conflict_without_context(self):
        assert "context" not in ConflictError("Username or email already exists").to_dict()

    def test_unauthorized_reason(self):
        error = UnauthorizedError("Refresh token expired", AuthFailureReason.EXPIRED)
        assert error.status == 401
        assert error.to_dict()["context"] == {"reason": "expired"}

    def test_invalid_credentials_is_unauthorized(self):
        error = InvalidCredentialsError()
        assert isinstance(error, UnauthorizedError)
        assert error.to_dict()["error"] == "invalid_credentials"


class TestExceptionHandlers:
    """Service errors surface as HTTP responses."""

    @pytest.mark.asyncio
    async def test_update_success(self, client: AsyncClient, sample_band):
        response = await client.patch(f"/api/bands/{sample_band.id}", json={"genre": "Beat"})
        assert response.status_code == 200
        assert response.json() == {"id": sample_band.id, "name": "The Beatles", "version": 2}

    @pytest.mark.asyncio
    async def test_not_found_maps_to_404(self, client: AsyncClient):
        response = await client.patch("/api/bands/424242", json={"genre": "Beat"})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_conflict_maps_to_409(self, client: AsyncClient, sample_band, other_band):
        response = await client.patch(
            f"/api/bands/{other_band.id}", json={"name": "The Beatles"}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_delete_is_idempotent_over_http(self, client: AsyncClient, sample_band):
        first = await client.delete(f"/api/bands/{sample_band.id}")
        second = await client.delete(f"/api/bands/{sample_band.id}")

        assert first.status_code == 200
        assert first.json()["already_deleted"] is False
        assert second.status_code == 200
        assert second.json()["already_deleted"] is True


class TestCurrentUserDependency:
    """Bearer token verification."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/me")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["context"]["reason"] == "malformed"

    @pytest.mark.asyncio
    async def test_valid_access_token(self, client: AsyncClient, sample_user):
        token = create_access_token(sample_user)
        response = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == {"id": sample_user.id, "username": "alice"}

    @pytest.mark.asyncio
    async def test_expired_access_token(self, client: AsyncClient, sample_user):
        token = create_access_token(sample_user, expires_delta=timedelta(seconds=-1))
        response = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["context"]["reason"] == "expired"

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, client: AsyncClient, sample_user):
        token = create_refresh_token(sample_user.id)
        response = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["context"]["reason"] == "malformed"

    @pytest.mark.asyncio
    async def test_token_for_missing_user_is_rejected(self, client: AsyncClient):
        token = create_access_token(
            MagicMock(id=4242, username="ghost", email="ghost@example.com")
        )
        response = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"
        assert response.json()["context"]["reason"] == "revoked"

    @pytest.mark.asyncio
    async def test_optional_auth_for_missing_user(self, client: AsyncClient):
        token = create_access_token(
            MagicMock(id=4242, username="ghost", email="ghost@example.com")
        )
        response = await client.get("/api/whoami", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == {"id": None}

    @pytest.mark.asyncio
    async def test_optional_auth_without_token(self, client: AsyncClient):
        response = await client.get("/api/whoami")
        assert response.status_code == 200
        assert response.json() == {"id": None}

    @pytest.mark.asyncio
    async def test_optional_auth_ignores_bad_token(self, client: AsyncClient):
        response = await client.get("/api/whoami", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 200
        assert response.json() == {"id": None}

    @pytest.mark.asyncio
    async def test_optional_auth_with_token(self, client: AsyncClient, sample_user):
        token = create_access_token(sample_user)
        response = await client.get("/api/whoami", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"id": sample_user.id}


class TestServiceProviders:
    """Per-request providers build services over the given session."""

    @pytest.mark.asyncio
    async def test_catalog_providers(self, db_session):
        assert (await get_band_service(db_session)).store.entity_name == "Band"
        assert (await get_album_service(db_session)).store.entity_name == "Album"
        assert (await get_event_service(db_session)).store.entity_name == "Event"

    @pytest.mark.asyncio
    async def test_token_manager_provider(self, db_session):
        manager = await get_token_manager(db_session)
        assert isinstance(manager, SessionTokenManager)
        assert manager.store.db is db_session
