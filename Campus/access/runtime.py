"""
Process-wide wiring of the access services.

Django entry points (middleware, decorators, signals, views) share one
permission cache so in-flight resolutions coalesce across requests. Tests
install their own instances with `configure()` and drop them with `reset()`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .administration import AccessAdministration
from .cache import PermissionCache
from .client import PermissionApiClient
from .resolver import PermissionResolver
from .roles import RoleCatalog

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AccessRuntime:
    client: PermissionApiClient
    resolver: PermissionResolver
    cache: PermissionCache
    roles: RoleCatalog
    administration: AccessAdministration


_runtime: AccessRuntime | None = None
_runtime_lock = threading.Lock()


def build_runtime(client: PermissionApiClient | None = None, **cache_options) -> AccessRuntime:
    client = client or PermissionApiClient()
    resolver = PermissionResolver(client)
    cache = PermissionCache(resolver, **cache_options)
    roles = RoleCatalog(client, backend=cache.backend, namespace=cache.namespace)
    administration = AccessAdministration(cache, client=client, roles=roles)
    return AccessRuntime(
        client=client,
        resolver=resolver,
        cache=cache,
        roles=roles,
        administration=administration,
    )


def get_runtime() -> AccessRuntime:
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = build_runtime()
            logger.info("Initialized access runtime")
        return _runtime


def configure(client: PermissionApiClient | None = None, **cache_options) -> AccessRuntime:
    global _runtime
    runtime = build_runtime(client, **cache_options)
    with _runtime_lock:
        previous, _runtime = _runtime, runtime
    if previous is not None:
        previous.cache.shutdown(wait=False)
    return runtime


def reset() -> None:
    global _runtime
    with _runtime_lock:
        previous, _runtime = _runtime, None
    if previous is not None:
        previous.cache.shutdown(wait=True)
