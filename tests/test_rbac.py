"""
Nutrition Portal - RBAC Tests

Unit tests for role-based access control.
Tests permission checks, policy loading, and route-level authorization.

Run with: pytest tests/test_rbac.py
"""

import pytest

from nutrition_portal.auth.dependencies import (
    AuthenticatedUser,
    ensure_self_or_permission,
    require_permission,
    require_role,
)
from nutrition_portal.auth.models import Role
from nutrition_portal.exceptions import Forbidden, Unauthenticated
from nutrition_portal.gateway.rbac import Permission, RBACPolicy
from tests.conftest import login_headers


def _user(role: Role, user_id: int = 1) -> AuthenticatedUser:
    return AuthenticatedUser(user_id=user_id, username="someone", role=role, token_id="t" * 32)


class TestRBACPolicy:
    """Tests for RBAC policy enforcement."""

    def test_admin_manages_accounts(self):
        policy = RBACPolicy()

        assert policy.has_permission(Role.ADMIN, Permission.MANAGE_USERS)
        assert policy.has_permission(Role.ADMIN, Permission.READ_USERS)
        assert policy.has_permission(Role.ADMIN, Permission.MANAGE_ROLE_DETAILS)

    def test_admin_does_not_submit_or_verify(self):
        policy = RBACPolicy()

        assert not policy.has_permission(Role.ADMIN, Permission.SUBMIT_VOUCHERS)
        assert not policy.has_permission(Role.ADMIN, Permission.VERIFY_VOUCHERS)

    def test_deo_permissions(self):
        policy = RBACPolicy()

        assert policy.has_permission(Role.DEO, Permission.SUBMIT_VOUCHERS)
        assert policy.has_permission(Role.DEO, Permission.EDIT_OWN_DETAILS)
        assert not policy.has_permission(Role.DEO, Permission.VERIFY_VOUCHERS)
        assert not policy.has_permission(Role.DEO, Permission.MANAGE_USERS)

    def test_vo_permissions(self):
        policy = RBACPolicy()

        assert policy.has_permission(Role.VO, Permission.VERIFY_VOUCHERS)
        assert not policy.has_permission(Role.VO, Permission.SUBMIT_VOUCHERS)
        assert not policy.has_permission(Role.VO, Permission.READ_USERS)

    def test_string_roles_accepted(self):
        assert RBACPolicy().has_permission("deo", Permission.READ_VOUCHERS)

    def test_unknown_role_denied(self):
        policy = RBACPolicy()

        assert not policy.has_permission("unknown_role", Permission.READ_VOUCHERS)
        assert policy.get_role_permissions("unknown_role") == set()

    def test_singleton(self):
        assert RBACPolicy() is RBACPolicy()


class TestDecorators:

    @pytest.mark.asyncio
    async def test_require_permission_allows(self):
        @require_permission(Permission.MANAGE_USERS)
        async def route(user=None):
            return "ok"

        assert await route(user=_user(Role.ADMIN)) == "ok"

    @pytest.mark.asyncio
    async def test_require_permission_denies(self):
        @require_permission(Permission.MANAGE_USERS)
        async def route(user=None):
            return "ok"

        with pytest.raises(Forbidden):
            await route(user=_user(Role.DEO))

    @pytest.mark.asyncio
    async def test_require_permission_without_user(self):
        @require_permission(Permission.MANAGE_USERS)
        async def route(user=None):
            return "ok"

        with pytest.raises(Unauthenticated):
            await route()

    @pytest.mark.asyncio
    async def test_require_role(self):
        @require_role(Role.VO)
        async def route(user=None):
            return "ok"

        assert await route(user=_user(Role.VO)) == "ok"
        with pytest.raises(Forbidden):
            await route(user=_user(Role.DEO))


class TestSelfOrPermission:

    def test_self_allowed(self):
        ensure_self_or_permission(_user(Role.DEO, 5), 5, Permission.MANAGE_ROLE_DETAILS)

    def test_other_denied(self):
        with pytest.raises(Forbidden):
            ensure_self_or_permission(_user(Role.DEO, 5), 6, Permission.MANAGE_ROLE_DETAILS)

    def test_admin_allowed_for_anyone(self):
        ensure_self_or_permission(_user(Role.ADMIN, 1), 6, Permission.MANAGE_ROLE_DETAILS)

    def test_self_needs_self_permission_when_given(self):
        with pytest.raises(Forbidden):
            ensure_self_or_permission(
                _user(Role.ADMIN, 1), 1, Permission.SUBMIT_VOUCHERS,
                self_permission=Permission.EDIT_OWN_DETAILS,
            )


class TestRouteAuthorization:

    def test_unauthenticated_is_401(self, client):
        response = client.get("/api/users")

        assert response.status_code == 401

    def test_officer_cannot_list_accounts(self, client, test_deo):
        response = client.get("/api/users", headers=login_headers(client, "deo0"))

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    def test_officer_cannot_register(self, client, test_vo):
        response = client.post(
            "/api/auth/register",
            json={
                "username": "sneaky",
                "password": "Secret123",
                "confirmPassword": "Secret123",
                "role": "admin",
            },
            headers=login_headers(client, "vo0"),
        )

        assert response.status_code == 403

    def test_admin_can_list_accounts(self, client, admin_headers):
        response = client.get("/api/users", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_officer_can_read_own_account_only(self, client, test_deo, test_vo):
        headers = login_headers(client, "deo0")

        assert client.get(f"/api/users/{test_deo.id}", headers=headers).status_code == 200
        assert client.get(f"/api/users/{test_vo.id}", headers=headers).status_code == 403
