from __future__ import annotations

import logging
from typing import Any

from django.core.cache import cache

from .adapter import to_role_hierarchy
from .catalog import DEFAULT_ROLE_LEVELS
from .client import PermissionApiClient
from .contracts import Principal, Role, RoleHierarchy
from .exceptions import Unauthenticated
from .settings import get_access_settings

logger = logging.getLogger(__name__)


class RoleCatalog:
    """Role hierarchy reference data, fetched once and kept until refreshed."""

    def __init__(
        self,
        client: PermissionApiClient | None = None,
        *,
        backend: Any = None,
        namespace: str | None = None,
    ) -> None:
        self.client = client or PermissionApiClient()
        self.backend = backend if backend is not None else cache
        self.namespace = namespace or get_access_settings().cache_prefix

    def _key(self) -> str:
        return f"{self.namespace}:roles:hierarchy"

    def cached(self) -> RoleHierarchy | None:
        value = self.backend.get(self._key())
        return value if isinstance(value, RoleHierarchy) else None

    def hierarchy(self, principal: Principal) -> RoleHierarchy:
        hierarchy = self.cached()
        if hierarchy is not None:
            return hierarchy
        return self.refresh(principal)

    def refresh(self, principal: Principal) -> RoleHierarchy:
        token = (principal.token or "").strip()
        if not token:
            raise Unauthenticated("A session token is required to load the role hierarchy.")
        hierarchy = to_role_hierarchy(self.client.get_role_hierarchy(bearer_token=token))
        self.backend.set(self._key(), hierarchy, timeout=None)
        logger.info("Loaded role hierarchy with %d roles", len(hierarchy.roles))
        return hierarchy

    def clear(self) -> None:
        self.backend.delete(self._key())

    def list_roles(self, principal: Principal) -> tuple[Role, ...]:
        return self.hierarchy(principal).roles

    def list_tokens(self, principal: Principal) -> frozenset[str]:
        return self.hierarchy(principal).permissions

    def level_of(self, role_name: str) -> int | None:
        """Level from the cached hierarchy, else from the reference ladder."""
        hierarchy = self.cached()
        if hierarchy is not None:
            level = hierarchy.level_of(role_name)
            if level is not None:
                return level
        return DEFAULT_ROLE_LEVELS.get(role_name)
