from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from .catalog import DEFAULT_ROLE_LEVELS
from .contracts import (
    BulkAssignOutcome,
    BulkAssignResult,
    PermissionAnalysis,
    PermissionCheck,
    PermissionSnapshot,
    Role,
    RoleHierarchy,
    RoleTransitionCheck,
)
from .exceptions import ContractError


def _as_set(value: Any) -> frozenset[str]:
    if not value:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(item).strip() for item in value if str(item).strip())
    return frozenset({str(value).strip()})


def _as_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    return (str(value).strip(),)


def _as_dict(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ContractError(f"Unexpected {what} payload (expected object).")
    return value


def _as_int(value: Any, default: int) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def to_permission_snapshot(
    principal_id: str,
    payload: dict[str, Any],
    *,
    fetched_at: datetime | None = None,
) -> PermissionSnapshot:
    """
    Adapter for `GET /me/permissions`:
    {
      "user": {"id": ..., "email": ..., "role": ..., "isEmailVerified": ...},
      "permissions": {"effective": [...], "role": [...], "extra": [...]}
    }
    """
    payload = _as_dict(payload, "permissions")
    user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
    permissions = payload.get("permissions")
    if isinstance(permissions, list):
        # Older backends return a flat list of effective tokens.
        permissions = {"effective": permissions}
    if not isinstance(permissions, dict):
        raise ContractError("Unexpected permissions payload (missing permission sets).")

    return PermissionSnapshot(
        principal_id=principal_id,
        effective=_as_set(permissions.get("effective")),
        role=str(user.get("role", "")).strip(),
        role_permissions=_as_set(permissions.get("role")),
        extra_permissions=_as_set(permissions.get("extra")),
        user_id=str(user.get("id") or user.get("_id") or principal_id).strip(),
        email=str(user.get("email", "")).strip(),
        is_email_verified=bool(user.get("isEmailVerified", False)),
        fetched_at=fetched_at or datetime.now(timezone.utc),
    )


def to_role(payload: dict[str, Any]) -> Role:
    name = str(payload.get("name", "")).strip()
    if not name:
        raise ContractError("Role payload without a name.")
    return Role(
        name=name,
        title=str(payload.get("title") or payload.get("displayTitle") or name).strip(),
        level=_as_int(payload.get("level"), DEFAULT_ROLE_LEVELS.get(name, 0)),
        permissions=_as_set(payload.get("permissions")),
    )


def to_role_hierarchy(payload: dict[str, Any]) -> RoleHierarchy:
    payload = _as_dict(payload, "role hierarchy")
    rows = payload.get("roles")
    if not isinstance(rows, list):
        raise ContractError("Unexpected role hierarchy payload (expected roles list).")
    roles = [to_role(row) for row in rows if isinstance(row, dict)]
    names = [role.name for role in roles]
    if len(names) != len(set(names)):
        raise ContractError("Role hierarchy contains duplicate role names.")
    roles.sort(key=lambda role: role.level)
    return RoleHierarchy(roles=tuple(roles), permissions=_as_set(payload.get("permissions")))


def to_permission_check(payload: dict[str, Any]) -> PermissionCheck:
    payload = _as_dict(payload, "permission check")
    if "hasPermission" in payload:
        allowed = bool(payload.get("hasPermission"))
    else:
        allowed = bool(payload.get("hasAny", payload.get("hasAnyPermission", False)))
    checked = _as_tuple(
        payload.get("checkedPermissions") or payload.get("permissions") or payload.get("permission")
    )
    matched = _as_tuple(payload.get("matchedPermissions"))
    if not matched and allowed and len(checked) == 1:
        matched = checked
    return PermissionCheck(allowed=allowed, permissions=checked, matched=matched)


def to_permission_analysis(user_id: str, payload: dict[str, Any]) -> PermissionAnalysis:
    payload = _as_dict(payload, "permission analysis")
    return PermissionAnalysis(
        user_id=str(payload.get("userId") or user_id),
        current_role=str(payload.get("currentRole", "")).strip(),
        role_permissions=_as_set(payload.get("rolePermissions")),
        custom_permissions=_as_set(payload.get("customPermissions")),
        effective_permissions=_as_set(payload.get("effectivePermissions")),
        role_hierarchy=_as_tuple(payload.get("roleHierarchy")),
    )


def to_bulk_outcome(user_ids: Iterable[str], payload: dict[str, Any]) -> BulkAssignOutcome:
    """
    Per-id results in request order. Ids the backend did not report on are
    returned as failures so callers never assume an unconfirmed success.
    """
    payload = _as_dict(payload, "bulk assignment")
    reported: dict[str, BulkAssignResult] = {}
    rows = payload.get("results") if isinstance(payload.get("results"), list) else []
    for row in rows:
        if not isinstance(row, dict):
            continue
        user_id = str(row.get("userId", "")).strip()
        if not user_id:
            continue
        reported[user_id] = BulkAssignResult(
            user_id=user_id,
            success=bool(row.get("success", False)),
            message=str(row.get("message") or ""),
        )

    results = []
    for user_id in user_ids:
        results.append(
            reported.get(user_id)
            or BulkAssignResult(user_id=user_id, success=False, message="No result returned")
        )
    return BulkAssignOutcome(message=str(payload.get("message") or ""), results=tuple(results))


def to_role_transition_check(payload: dict[str, Any]) -> RoleTransitionCheck:
    payload = _as_dict(payload, "role transition")
    return RoleTransitionCheck(
        valid=bool(payload.get("valid", False)),
        message=str(payload.get("message") or ""),
        warnings=_as_tuple(payload.get("warnings")),
    )


def message_of(payload: Any, default: str = "") -> str:
    if isinstance(payload, dict):
        return str(payload.get("message") or default)
    return default
