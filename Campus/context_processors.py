# context_processors.py
from django.utils.functional import SimpleLazyObject

from .access.session import AccessContext
from .navigation import navigation_for


def access(request):
    """Expose `access` and `dashboard_navigation` to templates, resolved lazily."""
    context = getattr(request, "access", None)
    if context is None:
        context = SimpleLazyObject(lambda: AccessContext.for_request(request))
    return {
        "access": context,
        "dashboard_navigation": SimpleLazyObject(lambda: navigation_for(context)),
    }
