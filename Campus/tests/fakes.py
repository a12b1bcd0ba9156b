from __future__ import annotations

import threading
import uuid
from collections import Counter

from django.core.cache.backends.locmem import LocMemCache

from Campus.access.exceptions import AuthorizationDenied, TransportError, Unauthenticated, ValidationError

ROLES = [
    {"name": "user", "title": "User", "level": 1, "permissions": ["blog:read", "course:read"]},
    {"name": "student", "title": "Student", "level": 2, "permissions": ["blog:read", "course:read", "comment:create"]},
    {"name": "author", "title": "Author", "level": 4, "permissions": ["blog:create", "blog:edit"]},
    {"name": "editor", "title": "Editor", "level": 5, "permissions": ["blog:create", "blog:edit", "blog:publish"]},
    {"name": "reviewer", "title": "Reviewer", "level": 5, "permissions": ["blog:edit", "comment:moderate"]},
    {
        "name": "admin",
        "title": "Admin",
        "level": 7,
        "permissions": ["blog:create", "blog:edit", "blog:delete", "user:manage", "system:admin"],
    },
]


def isolated_cache() -> LocMemCache:
    return LocMemCache(f"test-{uuid.uuid4().hex}", {})


class FakeAccessBackend:
    """
    In-memory stand-in for the access REST backend.

    Users are looked up by bearer token `tok-<user id>`; effective permissions
    are the role's base set plus the user's custom grants.
    """

    def __init__(self) -> None:
        self.roles = {row["name"]: row for row in ROLES}
        self.users: dict[str, dict] = {}
        self.calls: Counter = Counter()
        self.fail_resolve: Exception | None = None
        self.fail_bulk_for: set[str] = set()
        self.resolve_gate: threading.Event | None = None
        self.resolve_started = threading.Event()
        self._lock = threading.Lock()

    def add_user(self, user_id: str, role: str, custom=()) -> str:
        self.users[user_id] = {"role": role, "custom": set(custom)}
        return f"tok-{user_id}"

    def effective(self, user_id: str) -> set[str]:
        user = self.users[user_id]
        return set(self.roles[user["role"]]["permissions"]) | user["custom"]

    def _caller(self, bearer_token: str) -> str:
        user_id = bearer_token[len("tok-"):] if bearer_token.startswith("tok-") else ""
        if user_id not in self.users:
            raise Unauthenticated("Session expired")
        return user_id

    def _require_manager(self, bearer_token: str, target: str | None = None) -> str:
        caller = self._caller(bearer_token)
        if "user:manage" not in self.effective(caller):
            raise AuthorizationDenied("Insufficient privileges")
        if target is not None:
            if target not in self.users:
                raise ValidationError("User not found")
            caller_level = self.roles[self.users[caller]["role"]]["level"]
            target_level = self.roles[self.users[target]["role"]]["level"]
            if target != caller and target_level >= caller_level:
                raise AuthorizationDenied("Cannot modify a user at or above your level")
        return caller

    def _count(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1

    # PermissionApiClient surface -------------------------------------------------

    def is_configured(self) -> bool:
        return True

    def get_my_permissions(self, bearer_token: str) -> dict:
        self._count("get_my_permissions")
        self.resolve_started.set()
        if self.resolve_gate is not None:
            self.resolve_gate.wait(5)
        if self.fail_resolve is not None:
            raise self.fail_resolve
        user_id = self._caller(bearer_token)
        user = self.users[user_id]
        return {
            "user": {"id": user_id, "email": f"{user_id}@example.com", "role": user["role"], "isEmailVerified": True},
            "permissions": {
                "effective": sorted(self.effective(user_id)),
                "role": sorted(self.roles[user["role"]]["permissions"]),
                "extra": sorted(user["custom"]),
            },
        }

    def check_permission(self, permission: str, *, bearer_token: str) -> dict:
        self._count("check_permission")
        user_id = self._caller(bearer_token)
        return {"hasPermission": permission in self.effective(user_id), "permission": permission}

    def check_any_permissions(self, permissions: list[str], *, bearer_token: str) -> dict:
        self._count("check_any_permissions")
        user_id = self._caller(bearer_token)
        matched = [p for p in permissions if p in self.effective(user_id)]
        return {"hasAny": bool(matched), "matchedPermissions": matched}

    def get_role_hierarchy(self, *, bearer_token: str) -> dict:
        self._count("get_role_hierarchy")
        self._caller(bearer_token)
        permissions = sorted({p for row in ROLES for p in row["permissions"]} | {"course:create"})
        return {"roles": list(ROLES), "permissions": permissions}

    def assign_role(self, user_id: str, role: str, *, bearer_token: str) -> dict:
        self._count("assign_role")
        self._require_manager(bearer_token, user_id)
        if role not in self.roles:
            raise ValidationError("Invalid role")
        self.users[user_id]["role"] = role
        return {"message": f"Role {role} assigned"}

    def add_permissions(self, user_id: str, permissions: list[str], *, bearer_token: str) -> dict:
        self._count("add_permissions")
        self._require_manager(bearer_token, user_id)
        self.users[user_id]["custom"].update(permissions)
        return {"message": "Permissions added"}

    def remove_permissions(self, user_id: str, permissions: list[str], *, bearer_token: str) -> dict:
        self._count("remove_permissions")
        self._require_manager(bearer_token, user_id)
        self.users[user_id]["custom"].difference_update(permissions)
        return {"message": "Permissions removed"}

    def reset_permissions(self, user_id: str, *, bearer_token: str) -> dict:
        self._count("reset_permissions")
        self._require_manager(bearer_token, user_id)
        self.users[user_id]["custom"] = set()
        return {"message": "Permissions reset"}

    def bulk_assign_role(self, user_ids: list[str], role: str, *, bearer_token: str) -> dict:
        self._count("bulk_assign_role")
        self._require_manager(bearer_token)
        results = []
        for user_id in user_ids:
            if user_id in self.fail_bulk_for or user_id not in self.users:
                results.append({"userId": user_id, "success": False, "message": "Update failed"})
                continue
            self.users[user_id]["role"] = role
            results.append({"userId": user_id, "success": True})
        succeeded = sum(1 for r in results if r["success"])
        return {"message": f"{succeeded} of {len(user_ids)} users updated", "results": results}

    def validate_role_change(self, user_id: str, new_role: str, *, bearer_token: str) -> dict:
        self._count("validate_role_change")
        self._require_manager(bearer_token)
        current = self.roles[self.users[user_id]["role"]]
        target = self.roles.get(new_role)
        if target is None:
            return {"valid": False, "message": "Invalid role"}
        lost = sorted(set(current["permissions"]) - set(target["permissions"]))
        if target["level"] < current["level"]:
            return {
                "valid": True,
                "message": "Demotion",
                "warnings": [f"User will lose permission: {p}" for p in lost],
            }
        return {"valid": True, "message": "Role change allowed", "warnings": []}

    def get_permission_analysis(self, user_id: str, *, bearer_token: str) -> dict:
        self._count("get_permission_analysis")
        self._require_manager(bearer_token)
        user = self.users[user_id]
        return {
            "userId": user_id,
            "currentRole": user["role"],
            "rolePermissions": self.roles[user["role"]]["permissions"],
            "customPermissions": sorted(user["custom"]),
            "effectivePermissions": sorted(self.effective(user_id)),
            "roleHierarchy": [row["name"] for row in ROLES],
        }


class BrokenBackend(FakeAccessBackend):
    def __init__(self) -> None:
        super().__init__()
        self.fail_resolve = TransportError("Access API request failed after retries: connection refused")
