"""
Nutrition Portal - Anti-Forgery (CSRF) Protection

Double-submit cookie pattern without server-side session storage:
- GET /api/csrf-token returns a token and sets the same value as a cookie
- State-changing requests echo the token in the X-CSRF-Token header
- The gate compares header and cookie and checks the token's HMAC signature

Enforcement is a configuration decision (CSRF_ENFORCEMENT):
- strict:   mismatches are rejected with 403 ForgeryRejected
- advisory: the request proceeds, a warning is logged and returned in
            the X-CSRF-Warning response header
"""

import hashlib
import hmac
import logging
import secrets
from typing import Callable, Optional

from fastapi import APIRouter, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from nutrition_portal.config import settings
from nutrition_portal.exceptions import ForgeryRejected


logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
WARNING_HEADER = "X-CSRF-Warning"


def _sign(nonce: str) -> str:
    return hmac.new(
        settings.CSRF_SECRET_KEY.encode("utf-8"),
        nonce.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def issue_anti_forgery_token() -> str:
    """
    Create a new anti-forgery token.

    Format is ``<nonce>.<hmac>``; the signature lets the gate reject
    cookies that were not minted by this server.
    """
    nonce = secrets.token_urlsafe(32)
    return f"{nonce}.{_sign(nonce)}"


def validate_anti_forgery_token(request_token: Optional[str], cookie_token: Optional[str]) -> bool:
    """
    Check a header-supplied token against the cookie-supplied one.

    Returns:
        False if either is absent, they differ, or the signature is invalid
    """
    if not request_token or not cookie_token:
        return False

    if not hmac.compare_digest(request_token, cookie_token):
        return False

    nonce, sep, signature = request_token.rpartition(".")
    if not sep or not nonce:
        return False

    return hmac.compare_digest(signature, _sign(nonce))


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Anti-forgery check for every state-changing request.

    Safe methods pass through untouched. The outcome is recorded on
    request.state.csrf_verified for downstream handlers.
    """

    def __init__(self, app, enforcement: Optional[str] = None):
        super().__init__(app)
        self._enforcement = enforcement

    @property
    def enforcement(self) -> str:
        return self._enforcement or settings.CSRF_ENFORCEMENT

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method in SAFE_METHODS:
            request.state.csrf_verified = True
            return await call_next(request)

        header_token = request.headers.get(settings.CSRF_HEADER_NAME)
        cookie_token = request.cookies.get(settings.CSRF_COOKIE_NAME)
        verified = validate_anti_forgery_token(header_token, cookie_token)
        request.state.csrf_verified = verified

        if verified:
            return await call_next(request)

        reason = "missing" if not header_token or not cookie_token else "mismatch"

        if self.enforcement == "strict":
            logger.warning(
                "Rejected %s %s: CSRF token %s", request.method, request.url.path, reason
            )
            error = ForgeryRejected()
            body = error.to_dict()
            body["request_id"] = getattr(request.state, "request_id", None)
            return JSONResponse(status_code=error.status_code, content=body)

        logger.warning(
            "Proceeding without valid CSRF token (%s) for %s %s",
            reason, request.method, request.url.path,
        )
        response = await call_next(request)
        response.headers[WARNING_HEADER] = f"csrf token {reason}"
        return response


router = APIRouter(tags=["security"])


@router.get("/csrf-token", summary="Issue an anti-forgery token")
async def get_csrf_token(response: Response):
    """
    Issue a fresh anti-forgery token.

    The same value is set as a cookie; clients send it back in the
    X-CSRF-Token header on POST/PUT/PATCH/DELETE.
    """
    token = issue_anti_forgery_token()
    response.set_cookie(
        key=settings.CSRF_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.CSRF_COOKIE_SECURE,
        path="/",
    )
    return {"csrfToken": token}
