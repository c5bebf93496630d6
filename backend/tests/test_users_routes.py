"""Tests for the /users routes."""

import pytest

from conftest import make_token, make_user
from userfiles.services.user_views import AUTHENTICATED_FIELDS, PUBLIC_FIELDS


@pytest.fixture
def as_user(client):
    client.cookies.set("token", make_token(sub="u1", role="authenticated"))
    return client


@pytest.fixture
def as_admin(client):
    client.cookies.set("token", make_token(sub="admin-1", role="admin"))
    return client


class TestListUsers:
    @pytest.mark.unit
    def test_public_by_default(self, as_admin, mock_user_repository):
        mock_user_repository.find_all.return_value = [make_user(id="u1"), make_user(id="u2")]

        body = as_admin.get("/users").json()

        assert [u["id"] for u in body] == ["u1", "u2"]
        assert all(set(u) == set(PUBLIC_FIELDS) for u in body)
        assert body[0]["email"] == "***@example.com"

    @pytest.mark.unit
    def test_admin_view_for_admin(self, as_admin, mock_user_repository):
        mock_user_repository.find_all.return_value = [make_user(id="u1")]

        body = as_admin.get("/users", params={"view": "admin"}).json()

        assert body[0]["instance_id"] == "00000000-0000-0000-0000-000000000000"
        assert "encrypted_password" not in body[0]

    @pytest.mark.unit
    def test_admin_view_downgraded_per_user(self, as_user, mock_user_repository):
        mock_user_repository.find_all.return_value = [make_user(id="u1"), make_user(id="u2")]

        response = as_user.get("/users", params={"view": "admin"})

        assert response.status_code == 200
        own, other = response.json()
        assert set(own) == set(AUTHENTICATED_FIELDS)
        assert set(other) == set(PUBLIC_FIELDS)

    @pytest.mark.unit
    def test_unknown_view_is_public(self, as_admin, mock_user_repository):
        mock_user_repository.find_all.return_value = [make_user()]
        body = as_admin.get("/users", params={"view": "everything"}).json()
        assert set(body[0]) == set(PUBLIC_FIELDS)


class TestGetUser:
    @pytest.mark.unit
    def test_not_found(self, as_user):
        response = as_user.get("/users/missing")
        assert response.status_code == 404
        assert response.json() == {"detail": "User not found"}

    @pytest.mark.unit
    def test_own_profile_gets_authenticated_view(self, as_user, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u1")

        body = as_user.get("/users/u1").json()

        assert set(body) == set(AUTHENTICATED_FIELDS)
        assert body["email"] == "jane@example.com"
        mock_user_repository.find_one.assert_awaited_once_with("u1")

    @pytest.mark.unit
    def test_other_profile_gets_public_view(self, as_user, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u2")
        assert set(as_user.get("/users/u2").json()) == set(PUBLIC_FIELDS)

    @pytest.mark.unit
    def test_admin_request_silently_downgraded(self, as_user, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u1")

        response = as_user.get("/users/u1", params={"view": "admin"})

        assert response.status_code == 200
        assert set(response.json()) == set(AUTHENTICATED_FIELDS)

    @pytest.mark.unit
    def test_admin_can_ask_for_less(self, as_admin, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u1")
        body = as_admin.get("/users/u1", params={"view": "public"}).json()
        assert set(body) == set(PUBLIC_FIELDS)

    @pytest.mark.unit
    def test_public_route(self, as_admin, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u1")
        body = as_admin.get("/users/u1/public").json()
        assert set(body) == set(PUBLIC_FIELDS)

    @pytest.mark.unit
    def test_profile_route_for_stranger(self, as_user, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u2")
        body = as_user.get("/users/u2/profile").json()
        assert set(body) == set(PUBLIC_FIELDS)

    @pytest.mark.unit
    def test_profile_route_for_admin(self, as_admin, mock_user_repository):
        mock_user_repository.find_one.return_value = make_user(id="u2")
        body = as_admin.get("/users/u2/profile").json()
        assert set(body) == set(AUTHENTICATED_FIELDS)


class TestPermissions:
    @pytest.mark.unit
    def test_own(self, as_user):
        assert as_user.get("/users/u1/permissions").json() == {
            "canAccessAdmin": False,
            "canAccessProfile": True,
            "recommendedView": "authenticated",
            "userId": "u1",
        }

    @pytest.mark.unit
    def test_admin(self, as_admin):
        body = as_admin.get("/users/u9/permissions").json()
        assert body["canAccessAdmin"] is True
        assert body["recommendedView"] == "admin"

    @pytest.mark.unit
    def test_requires_auth(self, client):
        assert client.get("/users/u1/permissions").status_code == 401
