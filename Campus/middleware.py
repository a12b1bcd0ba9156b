from __future__ import annotations

from urllib.parse import urlencode

from django.http import JsonResponse
from django.shortcuts import redirect
from django.utils.functional import SimpleLazyObject

from .access.session import AccessContext
from .access.settings import get_access_settings


class AccessGuardMiddleware:
    """
    Attaches `request.access` and keeps anonymous users out of protected areas.

    Permission checks themselves stay with views (see `access_required`);
    this layer only decides whether there is a session to check against.
    """

    API_PREFIX = "/api/"

    def __init__(self, get_response):
        self.get_response = get_response
        self.config = get_access_settings()

    def _is_protected(self, path: str) -> bool:
        return path.startswith(self.config.protected_prefixes)

    def __call__(self, request):
        request.access = SimpleLazyObject(lambda: AccessContext.for_request(request))

        if self._is_protected(request.path) and not request.user.is_authenticated:
            if request.path.startswith(self.API_PREFIX):
                return JsonResponse(
                    {"status": "error", "reason": "Authentication required."},
                    status=401,
                )
            login_url = f"{self.config.login_url}?{urlencode({'next': request.get_full_path()})}"
            return redirect(login_url)

        return self.get_response(request)
