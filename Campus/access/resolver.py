from __future__ import annotations

import logging
from typing import Iterable

from .adapter import to_permission_check, to_permission_snapshot
from .client import PermissionApiClient
from .contracts import PermissionCheck, PermissionSnapshot, Principal
from .exceptions import Unauthenticated

logger = logging.getLogger(__name__)


def has_token(snapshot: PermissionSnapshot | None, token: str) -> bool:
    if snapshot is None:
        return False
    return token in snapshot.effective


def has_any(snapshot: PermissionSnapshot | None, tokens: Iterable[str]) -> bool:
    if snapshot is None:
        return False
    return any(token in snapshot.effective for token in tokens)


def has_all(snapshot: PermissionSnapshot | None, tokens: Iterable[str]) -> bool:
    if snapshot is None:
        return False
    return all(token in snapshot.effective for token in tokens)


class PermissionResolver:
    """
    Fetches the backend's effective permission set for a principal.

    The backend is the single source of truth: role-implied tokens are never
    recomputed locally from the role hierarchy.
    """

    def __init__(self, client: PermissionApiClient | None = None) -> None:
        self.client = client or PermissionApiClient()

    def _require_session(self, principal: Principal) -> str:
        if principal.is_anonymous:
            raise Unauthenticated("No authenticated principal.")
        token = (principal.token or "").strip()
        if not token:
            raise Unauthenticated(f"No session token for principal {principal.id}.")
        return token

    def resolve(self, principal: Principal) -> PermissionSnapshot:
        token = self._require_session(principal)
        payload = self.client.get_my_permissions(token)
        snapshot = to_permission_snapshot(principal.id, payload)
        logger.debug(
            "Resolved %d permissions for %s (role=%s)",
            len(snapshot.effective),
            principal.id,
            snapshot.role,
        )
        return snapshot

    def check_remote(self, principal: Principal, token: str) -> PermissionCheck:
        session_token = self._require_session(principal)
        return to_permission_check(self.client.check_permission(token, bearer_token=session_token))

    def check_any_remote(self, principal: Principal, tokens: Iterable[str]) -> PermissionCheck:
        session_token = self._require_session(principal)
        tokens = list(tokens)
        if not tokens:
            return PermissionCheck(allowed=False)
        payload = self.client.check_any_permissions(tokens, bearer_token=session_token)
        return to_permission_check(payload)
