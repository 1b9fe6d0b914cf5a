"""
Nutrition Portal - API Client Tests

PortalClient against the real app over httpx's ASGI transport, plus
transport-level failures with a mock transport.
"""

import httpx
import pytest
from sqlmodel import select

from nutrition_portal.app import app
from nutrition_portal.auth.models import ActiveFlag, Role, User
from nutrition_portal.client.api_client import (
    APIError,
    AuthError,
    NetworkOrServerError,
    PortalClient,
)
from nutrition_portal.client.session_cache import SessionCache
from tests.conftest import STRONG_PASSWORD, use_test_engine


BASE_URL = "http://testserver"

VO_DETAILS = {"fullName": "V One", "nicNumber": "200012345678"}


@pytest.fixture
def cache(tmp_path):
    return SessionCache(tmp_path / "session.json")


@pytest.fixture
def portal(test_engine, cache):
    use_test_engine(test_engine)
    return PortalClient(base_url=BASE_URL, cache=cache, transport=httpx.ASGITransport(app=app))


def active_vo_names(db_session):
    db_session.expire_all()
    statement = select(User.username).where(User.role == Role.VO, User.is_active == ActiveFlag.YES)
    return list(db_session.exec(statement).all())


class TestSession:

    @pytest.mark.asyncio
    async def test_login_caches_session(self, portal, cache, test_admin):
        async with portal:
            session = await portal.login("admin", STRONG_PASSWORD)

        assert session.role == Role.ADMIN
        assert cache.get().token == session.token
        assert "token" not in cache.get().account

    @pytest.mark.asyncio
    async def test_failed_login_surfaces_server_message(self, portal, cache, test_admin):
        async with portal:
            with pytest.raises(AuthError) as excinfo:
                await portal.login("admin", "wrong")

        assert excinfo.value.message == "Login failed"
        assert excinfo.value.status_code == 401
        assert cache.get() is None

    @pytest.mark.asyncio
    async def test_logout_revokes_and_clears(self, portal, cache, test_admin):
        async with portal:
            token = (await portal.login("admin", STRONG_PASSWORD)).token
            await portal.logout()

            assert cache.get() is None
            check = await portal._client.get(
                "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
            )

        assert check.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_when_logged_out(self, portal):
        async with portal:
            await portal.logout()

    @pytest.mark.asyncio
    async def test_calls_without_session_fail_locally(self, portal):
        async with portal:
            with pytest.raises(AuthError):
                await portal.deactivate_account(1)

    @pytest.mark.asyncio
    async def test_csrf_token_fetched_for_unsafe_calls(self, portal, test_admin):
        async with portal:
            await portal.login("admin", STRONG_PASSWORD)

            assert portal._csrf_token
            assert portal._client.cookies.get("csrf_token") == portal._csrf_token

    @pytest.mark.asyncio
    async def test_reset_password_mismatch(self, portal, test_admin):
        async with portal:
            with pytest.raises(APIError) as excinfo:
                await portal.reset_password("admin", STRONG_PASSWORD, "changed1", "changed2")

        assert excinfo.value.status_code == 400
        assert excinfo.value.payload["errors"][0]["path"] == "confirmPassword"


class TestProvisionOfficer:

    @pytest.mark.asyncio
    async def test_no_conflict_completes(self, portal, test_admin, db_session):
        async with portal:
            await portal.login("admin", STRONG_PASSWORD)
            outcome = await portal.provision_officer(
                "vo1", "Secret123", "Secret123", "vo", VO_DETAILS,
                confirm=lambda active: pytest.fail("no conflict expected"),
            )

        assert outcome.state == "complete"
        assert outcome.user["username"] == "vo1"
        assert outcome.details["nic_number"] == "200012345678"
        assert active_vo_names(db_session) == ["vo1"]

    @pytest.mark.asyncio
    async def test_conflict_cancelled(self, portal, test_admin, test_vo, db_session):
        seen = []

        async with portal:
            await portal.login("admin", STRONG_PASSWORD)
            outcome = await portal.provision_officer(
                "vo1", "Secret123", "Secret123", "vo", VO_DETAILS,
                confirm=lambda active: seen.append(active) or False,
            )

        assert outcome.state == "cancelled"
        assert seen == [{"id": test_vo.id, "username": "vo0"}]
        assert active_vo_names(db_session) == ["vo0"]

    @pytest.mark.asyncio
    async def test_conflict_confirmed(self, portal, test_admin, test_vo, db_session):
        async def confirm(active):
            return active["username"] == "vo0"

        async with portal:
            await portal.login("admin", STRONG_PASSWORD)
            outcome = await portal.provision_officer(
                "vo1", "Secret123", "Secret123", "vo", VO_DETAILS, confirm=confirm,
            )

        assert outcome.state == "complete"
        assert outcome.deactivated_user == {"id": test_vo.id, "username": "vo0"}
        assert outcome.details is not None
        assert active_vo_names(db_session) == ["vo1"]

    @pytest.mark.asyncio
    async def test_deactivate_account(self, portal, test_admin, test_vo, db_session):
        async with portal:
            await portal.login("admin", STRONG_PASSWORD)
            result = await portal.deactivate_account(test_vo.id)

        assert result["user"]["is_active"] == "no"
        assert active_vo_names(db_session) == []


class TestTransportFailures:

    @pytest.mark.asyncio
    async def test_csrf_fetch_failure_is_best_effort(self, cache):
        seen_headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/csrf-token":
                return httpx.Response(503)
            seen_headers.append(request.headers)
            return httpx.Response(
                200,
                json={"success": True, "token": "tok", "user": {"id": 1, "username": "a", "role": "admin"}},
            )

        async with PortalClient(BASE_URL, cache=cache, transport=httpx.MockTransport(handler)) as portal:
            assert await portal.fetch_csrf_token() == ""
            await portal.login("a", "b")

        assert "x-csrf-token" not in seen_headers[0]
        assert cache.get().token == "tok"

    @pytest.mark.asyncio
    async def test_connection_error(self, cache):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with PortalClient(BASE_URL, cache=cache, transport=httpx.MockTransport(handler)) as portal:
            with pytest.raises(NetworkOrServerError):
                await portal.login("a", "b")

    @pytest.mark.asyncio
    async def test_server_error(self, cache):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/csrf-token":
                return httpx.Response(200, json={"csrfToken": "x.y"})
            return httpx.Response(500, json={"success": False, "message": "Server error"})

        async with PortalClient(BASE_URL, cache=cache, transport=httpx.MockTransport(handler)) as portal:
            with pytest.raises(NetworkOrServerError) as excinfo:
                await portal.login("a", "b")

        assert excinfo.value.message == "Server error"
