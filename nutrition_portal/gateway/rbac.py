"""
Nutrition Portal - Role-Based Access Control (RBAC)

Permission control based on account roles.
Policies are defined in policies.yaml and enforced at the route level.

Security:
- Deny-by-default: All actions require explicit permission
- Role hierarchy is NOT inherited (explicit grants only)
"""

from enum import Enum
from typing import Dict, Optional, Set
from pathlib import Path

import yaml

from nutrition_portal.auth.models import Role


POLICY_PATH = Path(__file__).parent / "policies.yaml"


class Permission(str, Enum):
    """Granular permissions for system actions."""
    # Account administration
    MANAGE_USERS = "manage:users"
    READ_USERS = "read:users"
    MANAGE_ROLE_DETAILS = "manage:role_details"

    # Officer self-service
    EDIT_OWN_DETAILS = "edit:own_details"

    # Voucher routing
    SUBMIT_VOUCHERS = "submit:vouchers"
    VERIFY_VOUCHERS = "verify:vouchers"
    READ_VOUCHERS = "read:vouchers"


class RBACPolicy:
    """
    Manages role-to-permission mappings loaded from policies.yaml.

    Singleton; the policy file is read once per process.
    """

    _instance: Optional["RBACPolicy"] = None
    _policies: Dict[str, Set[str]] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_policies()
        return cls._instance

    def _load_policies(self, path: Path = POLICY_PATH):
        """Load policies from YAML configuration file."""
        if not path.exists():
            # Default deny-all if no policy file
            self._policies = {}
            return

        with open(path, "r") as f:
            config = yaml.safe_load(f) or {}

        self._policies = {
            role: set(perms or [])
            for role, perms in config.get("roles", {}).items()
        }

    def has_permission(self, role, permission: Permission) -> bool:
        """
        Check if a role has a specific permission.

        Args:
            role: Account role (Role or its canonical string)
            permission: Required permission

        Returns:
            True if permitted, False otherwise
        """
        key = role.value if isinstance(role, Role) else role
        return permission.value in self._policies.get(key, set())

    def get_role_permissions(self, role) -> Set[str]:
        """Get all permissions for a role."""
        key = role.value if isinstance(role, Role) else role
        return set(self._policies.get(key, set()))
