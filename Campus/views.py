# views.py - JSON endpoints for the current principal's permissions and user administration
import json
import logging
from dataclasses import asdict

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .access import catalog
from .access.contracts import PermissionSnapshot
from .access.exceptions import (
    AccessError,
    AuthorizationDenied,
    Unauthenticated,
    ValidationError,
)
from .access.runtime import get_runtime
from .access.session import principal_from_request
from .decorators import access_required

logger = logging.getLogger(__name__)

manage_users_required = access_required(catalog.USER_MANAGE, roles="admin")


def _body(request) -> dict:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Request body is not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _error_response(exc: AccessError) -> JsonResponse:
    if isinstance(exc, Unauthenticated):
        return JsonResponse({"success": False, "message": str(exc)}, status=401)
    if isinstance(exc, AuthorizationDenied):
        return JsonResponse({"success": False, "message": str(exc)}, status=403)
    if isinstance(exc, ValidationError):
        return JsonResponse(
            {"success": False, "message": str(exc), "errors": exc.messages()},
            status=400,
        )
    logger.warning("Access backend failure: %s", exc)
    return JsonResponse({"success": False, "message": str(exc)}, status=502)


def _sorted(tokens) -> list:
    return sorted(tokens)


def _snapshot_data(snapshot: PermissionSnapshot) -> dict:
    return {
        "userId": snapshot.principal_id,
        "role": snapshot.role,
        "email": snapshot.email,
        "isEmailVerified": snapshot.is_email_verified,
        "permissions": {
            "effective": _sorted(snapshot.effective),
            "role": _sorted(snapshot.role_permissions),
            "extra": _sorted(snapshot.extra_permissions),
        },
        "fetchedAt": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
    }


# ----------------------------------------------------------------------
# Current principal
# ----------------------------------------------------------------------


@require_GET
def my_permissions(request):
    principal = principal_from_request(request)
    try:
        snapshot = get_runtime().cache.get(principal)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse({"success": True, "data": _snapshot_data(snapshot)})


@require_POST
def refresh_my_permissions(request):
    principal = principal_from_request(request)
    try:
        snapshot = get_runtime().cache.refresh(principal)
    except AccessError as exc:
        return _error_response(exc)
    if hasattr(request, "access"):
        request.access.forget()
    return JsonResponse({"success": True, "data": _snapshot_data(snapshot)})


@require_POST
def check_my_permission(request):
    principal = principal_from_request(request)
    try:
        permission = str(_body(request).get("permission") or "").strip()
        if not permission:
            raise ValidationError("A permission is required.", {"permission": ["This field is required."]})
        check = get_runtime().resolver.check_remote(principal, permission)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse({"success": True, "data": {"hasPermission": check.allowed, "permission": permission}})


@require_POST
def check_my_permissions_any(request):
    principal = principal_from_request(request)
    try:
        permissions = _body(request).get("permissions") or []
        if not isinstance(permissions, list):
            raise ValidationError("Permissions must be a list.", {"permissions": ["Expected a list."]})
        check = get_runtime().resolver.check_any_remote(principal, permissions)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse(
        {
            "success": True,
            "data": {"hasAny": check.allowed, "matchedPermissions": list(check.matched)},
        }
    )


# ----------------------------------------------------------------------
# Administration
# ----------------------------------------------------------------------


@require_GET
@manage_users_required
def role_hierarchy(request):
    actor = principal_from_request(request)
    administration = get_runtime().administration
    try:
        if request.GET.get("refresh") in ("1", "true"):
            hierarchy = administration.refresh_roles(actor)
        else:
            hierarchy = administration.role_hierarchy(actor)
    except AccessError as exc:
        return _error_response(exc)

    grouped: dict[str, list] = {}
    for token in _sorted(hierarchy.permissions):
        grouped.setdefault(catalog.domain_of(token) or "other", []).append(token)
    return JsonResponse(
        {
            "success": True,
            "data": {
                "roles": [
                    {
                        "name": role.name,
                        "title": role.title,
                        "level": role.level,
                        "permissions": _sorted(role.permissions),
                    }
                    for role in hierarchy.roles
                ],
                "permissions": _sorted(hierarchy.permissions),
                "permissionsByDomain": grouped,
            },
        }
    )


@require_POST
@manage_users_required
def assign_role(request, user_id):
    actor = principal_from_request(request)
    try:
        role = _body(request).get("role")
        message = get_runtime().administration.assign_role(actor, user_id, role)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse({"success": True, "data": {"message": message}})


@require_http_methods(["POST", "DELETE"])
@manage_users_required
def user_permissions(request, user_id):
    actor = principal_from_request(request)
    administration = get_runtime().administration
    try:
        permissions = _body(request).get("permissions") or []
        if not isinstance(permissions, list):
            raise ValidationError("Permissions must be a list.", {"permissions": ["Expected a list."]})
        if request.method == "POST":
            message = administration.grant_permissions(actor, user_id, permissions)
        else:
            message = administration.revoke_permissions(actor, user_id, permissions)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse({"success": True, "data": {"message": message}})


@require_POST
@manage_users_required
def reset_permissions(request, user_id):
    actor = principal_from_request(request)
    try:
        message = get_runtime().administration.reset_permissions(actor, user_id)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse({"success": True, "data": {"message": message}})


@require_POST
@manage_users_required
def bulk_assign_role(request):
    actor = principal_from_request(request)
    try:
        body = _body(request)
        user_ids = body.get("userIds") or []
        if not isinstance(user_ids, list):
            raise ValidationError("userIds must be a list.", {"userIds": ["Expected a list."]})
        outcome = get_runtime().administration.bulk_assign_role(actor, user_ids, body.get("role"))
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse(
        {
            "success": True,
            "data": {
                "message": outcome.message,
                "results": [
                    {"userId": r.user_id, "success": r.success, "message": r.message}
                    for r in outcome.results
                ],
            },
        }
    )


@require_POST
@manage_users_required
def validate_role_change(request, user_id):
    actor = principal_from_request(request)
    try:
        new_role = _body(request).get("newRole")
        check = get_runtime().administration.validate_role_transition(actor, user_id, new_role)
    except AccessError as exc:
        return _error_response(exc)
    return JsonResponse(
        {
            "success": True,
            "data": {"valid": check.valid, "message": check.message, "warnings": list(check.warnings)},
        }
    )


@require_GET
@manage_users_required
def permission_analysis(request, user_id):
    actor = principal_from_request(request)
    try:
        analysis = get_runtime().administration.analyze_permissions(actor, user_id)
    except AccessError as exc:
        return _error_response(exc)
    data = asdict(analysis)
    return JsonResponse(
        {
            "success": True,
            "data": {
                "userId": data["user_id"],
                "currentRole": data["current_role"],
                "rolePermissions": _sorted(data["role_permissions"]),
                "customPermissions": _sorted(data["custom_permissions"]),
                "effectivePermissions": _sorted(data["effective_permissions"]),
                "roleHierarchy": list(data["role_hierarchy"]),
            },
        }
    )
