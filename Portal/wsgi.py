"""
WSGI config for Portal project.

It exposes the WSGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/6.0/howto/deployment/wsgi/
"""

import logging
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Portal.settings')

application = get_wsgi_application()

# Log the access backend in use so misconfigurations are obvious at boot.
from django.conf import settings  # noqa: E402

logger = logging.getLogger("campus.startup")
release = os.getenv("GIT_SHA") or "unknown"
logger.info(
    "Campus startup release=%s DEBUG=%s ACCESS_API=%s",
    release,
    settings.DEBUG,
    getattr(settings, "CAMPUS_ACCESS_API_BASE_URL", "") or "<not configured>",
)
