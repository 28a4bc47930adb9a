"""Tests for login, session resolution and logout over HTTP."""

import asyncio

import pytest
from fastapi import HTTPException

from conftest import ACME_CLIENT, STAFF, act_as
from shiftboard.middleware.auth import SESSION_COOKIE, require_admin, require_staff
from shiftboard.services.auth import AuthenticatedUser, hash_password

PASSWORD = "hunter2-but-longer"


class TestLoginFlow:
    def _user(self, store, **kwargs):
        return store.add_user("owner@acme.example", hash_password(PASSWORD, rounds=4), client_slug="acme", **kwargs)

    def test_login_and_me(self, client, store):
        self._user(store)
        act_as(None)

        resp = client.post("/api/auth/login", json={"email": "owner@acme.example", "password": PASSWORD})
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["client_slug"] == "acme"
        assert SESSION_COOKIE in resp.headers["set-cookie"]
        assert "httponly" in resp.headers["set-cookie"].lower()

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "owner@acme.example"
        assert me.json()["source"] == "store"

    def test_bad_password(self, client, store):
        self._user(store)
        resp = client.post("/api/auth/login", json={"email": "owner@acme.example", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid email or password"}

    def test_locked_account(self, client, store):
        user = self._user(store)
        for _ in range(5):
            client.post("/api/auth/login", json={"email": "owner@acme.example", "password": "nope"})
        assert user.locked_until is not None

        resp = client.post("/api/auth/login", json={"email": "owner@acme.example", "password": PASSWORD})
        assert resp.status_code == 423

    def test_logout_invalidates_token(self, client, store):
        self._user(store)
        act_as(None)
        token = client.post("/api/auth/login", json={"email": "owner@acme.example", "password": PASSWORD}).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid or expired session"

    def test_logout_all(self, client, store):
        self._user(store)
        act_as(None)
        creds = {"email": "owner@acme.example", "password": PASSWORD}
        first = client.post("/api/auth/login", json=creds).json()["token"]
        second = client.post("/api/auth/login", json=creds).json()["token"]

        resp = client.post("/api/auth/logout-all", headers={"Authorization": f"Bearer {first}"})
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {second}"}).status_code == 401

    def test_missing_password(self, client):
        resp = client.post("/api/auth/login", json={"email": "owner@acme.example"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: password"


class TestRoleGuards:
    def test_staff_and_admin(self):
        internal = AuthenticatedUser(id="u-1", email="ops@example.com", name="Ops", role="internal")
        assert asyncio.run(require_staff(internal)) is internal
        with pytest.raises(HTTPException) as exc:
            asyncio.run(require_admin(internal))
        assert exc.value.status_code == 403
        assert asyncio.run(require_admin(STAFF)) is STAFF

    def test_client_is_not_staff(self):
        with pytest.raises(HTTPException) as exc:
            asyncio.run(require_staff(ACME_CLIENT))
        assert exc.value.detail == "Staff access required"
