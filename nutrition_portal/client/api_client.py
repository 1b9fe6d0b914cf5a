"""
HTTP API client for the Nutrition Portal back end.

Usage:

    from nutrition_portal.client.api_client import PortalClient

    async with PortalClient() as client:
        await client.login("admin", "admin123")
        outcome = await client.provision_officer(
            username="vo1",
            password="Secret1",
            confirm_password="Secret1",
            role="vo",
            details={"fullName": "V One", "nicNumber": "200012345678"},
            confirm=lambda active: ask_operator(active["username"]),
        )

Anti-forgery tokens are fetched on a best-effort basis: when the fetch fails
the request still goes out without one and the server decides.
"""

from __future__ import annotations

import inspect
import logging
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from nutrition_portal.client.session_cache import ClientSession, SessionCache


logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

ConfirmCallback = Callable[[Dict[str, Any]], Union[bool, Awaitable[bool]]]


def _load_base_url() -> str:
    """
    Determine the back-end base URL.

    Priority:
    1. Environment variable NUTRITION_API_BASE_URL
    2. Default: http://127.0.0.1:8000
    """
    env_url = os.getenv("NUTRITION_API_BASE_URL")
    if env_url:
        return env_url.rstrip("/")
    return "http://127.0.0.1:8000"


# -----------------------------
# Error types
# -----------------------------


class APIError(Exception):
    """Error response from the API; ``message`` is the server's text verbatim."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class AuthError(APIError):
    """Authentication / authorization error (401, 403)."""


class ConflictError(APIError):
    """409 from the API; ``active_user`` is set for active-officer conflicts."""

    @property
    def active_user(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("activeUser")


class NetworkOrServerError(APIError):
    """Transport failure or 5xx response."""


@dataclass
class ProvisioningOutcome:
    """Where a provision_officer() run ended."""
    state: str  # "complete" | "cancelled"
    user: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    deactivated_user: Optional[Dict[str, Any]] = None


# -----------------------------
# Main API client
# -----------------------------


class PortalClient:
    """
    Async client for the dashboard flows.

    The bearer token comes from the SessionCache, so a restarted client
    continues as the last logged-in account.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[SessionCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url: str = (base_url or _load_base_url()).rstrip("/")
        self.cache = cache or SessionCache()
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._csrf_token: str = ""

    async def __aenter__(self) -> "PortalClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ---------- Internal helpers ----------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _auth_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        if token is None:
            session = self.cache.get()
            if session is None:
                raise AuthError("Not logged in - call login() first")
            token = session.token
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        auth: bool = True,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        client = await self._ensure_client()

        headers: Dict[str, str] = {}
        if auth:
            headers.update(self._auth_headers(token))
        if method in UNSAFE_METHODS:
            if not self._csrf_token:
                await self.fetch_csrf_token()
            if self._csrf_token:
                headers[CSRF_HEADER] = self._csrf_token

        try:
            resp = await client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise NetworkOrServerError(f"{method} {path} failed: {exc}") from exc

        warning = resp.headers.get("X-CSRF-Warning")
        if warning:
            logger.warning("Server accepted %s %s with warning: %s", method, path, warning)

        return self._parse(resp)

    @staticmethod
    def _parse(resp: httpx.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}

        if resp.is_success:
            return data

        message = data.get("message") or resp.reason_phrase or "Request failed"
        if resp.status_code >= 500:
            raise NetworkOrServerError(message, resp.status_code, data)
        if resp.status_code in (401, 403):
            raise AuthError(message, resp.status_code, data)
        if resp.status_code == 409:
            raise ConflictError(message, resp.status_code, data)
        raise APIError(message, resp.status_code, data)

    # ---------- Public methods ----------

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_csrf_token(self) -> str:
        """
        GET /api/csrf-token; the cookie lands in the client's cookie jar.

        Returns "" when the token could not be fetched.
        """
        client = await self._ensure_client()
        try:
            resp = await client.get("/api/csrf-token")
            resp.raise_for_status()
            self._csrf_token = resp.json().get("csrfToken") or ""
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to get CSRF token, proceeding without it: %s", exc)
            self._csrf_token = ""
        return self._csrf_token

    # ---- Authentication ----

    async def login(self, username: str, password: str) -> ClientSession:
        """POST /api/auth/login and cache the returned identity and token."""
        data = await self._request(
            "POST", "/api/auth/login",
            json={"username": username, "password": password},
            auth=False,
        )
        return self.cache.set(data["user"], data["token"])

    async def logout(self) -> None:
        """Revoke the token server side, then clear the cache."""
        session = self.cache.get()
        if session is None:
            return
        try:
            await self._request("POST", "/api/auth/logout", token=session.token)
        except AuthError as exc:
            logger.info("Server refused logout, clearing local session: %s", exc.message)
        finally:
            self.cache.clear()

    async def reset_password(
        self,
        username: str,
        old_password: str,
        new_password: str,
        confirm_password: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "username": username,
            "oldPassword": old_password,
            "newPassword": new_password,
        }
        if confirm_password is not None:
            payload["confirmPassword"] = confirm_password
        return await self._request("POST", "/api/auth/reset-password", json=payload, auth=False)

    # ---- Provisioning ----

    async def register_account(
        self,
        username: str,
        password: str,
        confirm_password: str,
        role: str,
        is_active: str = "yes",
        deactivate_conflicting: bool = False,
    ) -> Dict[str, Any]:
        """
        POST /api/auth/register as the cached admin.

        Raises:
            ConflictError: Another officer of the role is active
                (see ``ConflictError.active_user``)
        """
        return await self._request(
            "POST", "/api/auth/register",
            json={
                "username": username,
                "password": password,
                "confirmPassword": confirm_password,
                "role": role,
                "isActive": is_active,
                "deactivateConflicting": deactivate_conflicting,
            },
        )

    async def deactivate_account(self, user_id: int) -> Dict[str, Any]:
        return await self._request("PUT", f"/api/users/{user_id}", json={"isActive": "no"})

    async def submit_role_details(
        self,
        role: str,
        user_id: int,
        details: Dict[str, Any],
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        POST /api/user-details/{role}/{user_id}.

        ``token`` overrides the cached one, e.g. the token returned for a
        freshly registered officer.
        """
        return await self._request(
            "POST", f"/api/user-details/{role}/{user_id}", json=details, token=token
        )

    async def provision_officer(
        self,
        username: str,
        password: str,
        confirm_password: str,
        role: str,
        details: Dict[str, Any],
        confirm: ConfirmCallback,
        is_active: str = "yes",
    ) -> ProvisioningOutcome:
        """
        Drive the two-step officer provisioning.

        On an active-officer conflict ``confirm`` is called with the active
        account ({id, username}); returning True retries with the conflicting
        account deactivated in the same transaction, False cancels.
        """
        try:
            created = await self.register_account(
                username, password, confirm_password, role, is_active=is_active
            )
        except ConflictError as conflict:
            if conflict.active_user is None:
                raise

            decision = confirm(conflict.active_user)
            if inspect.isawaitable(decision):
                decision = await decision
            if not decision:
                logger.info("Provisioning of %s cancelled by operator", username)
                return ProvisioningOutcome(state="cancelled")

            created = await self.register_account(
                username, password, confirm_password, role,
                is_active=is_active, deactivate_conflicting=True,
            )

        user = created["user"]
        outcome = ProvisioningOutcome(
            state="complete",
            user=user,
            deactivated_user=created.get("deactivatedUser"),
        )
        if created.get("requiresAdditionalDetails"):
            submitted = await self.submit_role_details(
                role, user["id"], details, token=created.get("token")
            )
            outcome.details = submitted.get("details")
        return outcome
