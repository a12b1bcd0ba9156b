import logging

from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from .access.runtime import get_runtime
from .access.session import principal_id_for
from .access.settings import get_access_settings

logger = logging.getLogger(__name__)


@receiver(user_logged_in)
def reset_permissions_on_login(sender, request, user, **kwargs):
    """
    Start every login without a snapshot; the first guard resolves it.
    """
    get_runtime().cache.invalidate(principal_id_for(user))


@receiver(user_logged_out)
def drop_permissions_on_logout(sender, request, user, **kwargs):
    if user is None:
        return
    get_runtime().cache.invalidate(principal_id_for(user))
    if request is not None and hasattr(request, "session"):
        request.session.pop(get_access_settings().session_token_key, None)
    logger.info("Cleared permissions of %s on logout", principal_id_for(user))
