"""
Client-side session cache.

Holds the last known identity and bearer token between runs of a dashboard
client. One JSON record is the single source of truth; the token is never
duplicated inside the account.

Usage:

    from nutrition_portal.client.session_cache import SessionCache

    cache = SessionCache()
    cache.set({"id": 7, "username": "vo1", "role": "vo"}, token)
    decision = cache.route_for("vo")   # RouteDecision(action="render", ...)

The cache is advisory: the server re-checks every request.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from nutrition_portal.auth.models import Role


logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"

DASHBOARD_PATHS = {
    Role.ADMIN: "/admin_dashboard",
    Role.DEO: "/deo_dashboard",
    Role.VO: "/vo_dashboard",
}


def _default_path() -> Path:
    """
    Location of the cache file.

    Priority:
    1. Environment variable NUTRITION_SESSION_FILE
    2. ~/.nutrition_portal/session.json
    """
    env_path = os.getenv("NUTRITION_SESSION_FILE")
    if env_path:
        return Path(env_path)
    return Path.home() / ".nutrition_portal" / "session.json"


@dataclass
class ClientSession:
    account: Dict[str, Any]
    token: str

    @property
    def role(self) -> Role:
        return Role.parse(self.account["role"])


@dataclass
class RouteDecision:
    """What a dashboard should do for a page requiring ``required_role``."""
    action: str  # "login" | "render" | "redirect"
    path: str


class SessionCache:
    """JSON-file store for one ClientSession."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path else _default_path()

    def set(self, account: Dict[str, Any], token: str) -> ClientSession:
        if not token:
            raise ValueError("token cannot be empty")

        # keep the record flat: the token lives only at the top level
        account = {k: v for k, v in account.items() if k != "token"}
        session = ClientSession(account=account, token=token)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(asdict(session), f)
        return session

    def get(self) -> Optional[ClientSession]:
        """Return the cached session; corrupt records are cleared."""
        if not self.path.exists():
            return None

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            Role.parse(data["account"]["role"])
            session = ClientSession(account=dict(data["account"]), token=str(data["token"]))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable session cache %s: %s", self.path, exc)
            self.clear()
            return None

        if not session.token:
            self.clear()
            return None
        return session

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def route_for(self, required_role: Union[str, Role]) -> RouteDecision:
        """
        Decide where to send the user for a page guarded by ``required_role``.

        No session -> login; matching role -> render; otherwise the cached
        role's own dashboard.
        """
        session = self.get()
        if session is None:
            return RouteDecision(action="login", path=LOGIN_PATH)

        required = Role.parse(required_role)
        if session.role == required:
            return RouteDecision(action="render", path=DASHBOARD_PATHS[required])

        return RouteDecision(action="redirect", path=DASHBOARD_PATHS[session.role])
