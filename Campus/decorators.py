from __future__ import annotations

from functools import wraps
from urllib.parse import urlencode

from django.http import HttpResponseForbidden, JsonResponse
from django.shortcuts import redirect

from .access.guards import PermissionGuard, build_gate
from .access.runtime import get_runtime
from .access.session import principal_from_request
from .access.settings import get_access_settings


def _denied(request, decision, anonymous: bool):
    if request.path.startswith("/api/"):
        return JsonResponse(
            {"status": "error", "reason": decision.reason},
            status=401 if anonymous else 403,
        )
    if anonymous:
        login_url = get_access_settings().login_url
        return redirect(f"{login_url}?{urlencode({'next': request.get_full_path()})}")
    if decision.redirect_to:
        return redirect(decision.redirect_to)
    return HttpResponseForbidden(
        "You don't have permission to access this content. "
        "Please contact your administrator if you believe this is an error."
    )


def access_required(
    permission: str | None = None,
    *,
    permissions=None,
    roles=None,
    require_all: bool = False,
    redirect_to: str | None = None,
):
    """
    Protect a view with a permission gate.

    `permissions` with `require_all` picks all-of vs any-of; when both tokens
    and `roles` are given, either one passing is enough.
    """
    gate = build_gate(permission, permissions, roles, require_all)

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            runtime = get_runtime()
            guard = PermissionGuard(
                runtime.cache,
                gate,
                redirect_to=redirect_to,
                level_of=runtime.roles.level_of,
            )
            principal = principal_from_request(request)
            decision = guard.evaluate(principal)
            request.access_decision = decision
            if decision.allowed:
                return view_func(request, *args, **kwargs)
            return _denied(request, decision, principal.is_anonymous)

        return _wrapped_view

    return decorator
