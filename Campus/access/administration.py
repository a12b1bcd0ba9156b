from __future__ import annotations

import logging
from typing import Iterable

from .adapter import (
    message_of,
    to_bulk_outcome,
    to_permission_analysis,
    to_role_transition_check,
)
from .cache import PermissionCache
from .client import PermissionApiClient
from .contracts import (
    BulkAssignOutcome,
    PermissionAnalysis,
    Principal,
    Role,
    RoleHierarchy,
    RoleTransitionCheck,
)
from .exceptions import AccessError, Unauthenticated, ValidationError
from .roles import RoleCatalog

logger = logging.getLogger(__name__)


def _clean_ids(user_ids: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for user_id in user_ids:
        value = str(user_id or "").strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def _clean_tokens(tokens: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for token in tokens:
        value = str(token or "").strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


class AccessAdministration:
    """
    Mutations of another principal's role and custom grants.

    Every successful mutation drops the target's cached snapshot; when the
    target is the acting principal the snapshot is resolved again right away.
    """

    def __init__(
        self,
        cache: PermissionCache,
        *,
        client: PermissionApiClient | None = None,
        roles: RoleCatalog | None = None,
    ) -> None:
        self.cache = cache
        self.client = client or PermissionApiClient()
        self.roles = roles or RoleCatalog(self.client)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _token(self, actor: Principal) -> str:
        token = (actor.token or "").strip()
        if actor.is_anonymous or not token:
            raise Unauthenticated("Administration requires an authenticated session.")
        return token

    def _require_user(self, user_id: str) -> str:
        value = str(user_id or "").strip()
        if not value:
            raise ValidationError("A user id is required.", {"userId": ["This field is required."]})
        return value

    def _require_role(self, actor: Principal, role: str) -> str:
        value = str(role or "").strip()
        if not value:
            raise ValidationError("A role is required.", {"role": ["This field is required."]})
        hierarchy = self.roles.hierarchy(actor)
        if hierarchy.get(value) is None:
            raise ValidationError(
                f"Unknown role '{value}'.",
                {"role": [f"Must be one of: {', '.join(hierarchy.names())}."]},
            )
        return value

    def _is_self(self, actor: Principal, user_id: str) -> bool:
        if user_id == actor.id:
            return True
        snapshot = self.cache.peek(actor.id)
        return snapshot is not None and snapshot.user_id == user_id

    def _after_mutation(self, actor: Principal, user_id: str) -> None:
        is_self = self._is_self(actor, user_id)
        self.cache.invalidate(user_id)
        if is_self:
            try:
                self.cache.refresh(actor)
            except AccessError as exc:
                # The mutation itself succeeded; guards stay fail-closed until a resolve works.
                logger.warning("Re-resolving own permissions after mutation failed: %s", exc)

    # ------------------------------------------------------------------
    # Role hierarchy
    # ------------------------------------------------------------------

    def role_hierarchy(self, actor: Principal) -> RoleHierarchy:
        return self.roles.hierarchy(actor)

    def list_roles(self, actor: Principal) -> tuple[Role, ...]:
        return self.roles.list_roles(actor)

    def refresh_roles(self, actor: Principal) -> RoleHierarchy:
        return self.roles.refresh(actor)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def assign_role(self, actor: Principal, user_id: str, role: str) -> str:
        user_id = self._require_user(user_id)
        role = self._require_role(actor, role)
        payload = self.client.assign_role(user_id, role, bearer_token=self._token(actor))
        logger.info("%s assigned role %s to %s", actor.id, role, user_id)
        self._after_mutation(actor, user_id)
        return message_of(payload, "Role assigned successfully")

    def grant_permissions(self, actor: Principal, user_id: str, tokens: Iterable[str]) -> str:
        user_id = self._require_user(user_id)
        tokens = _clean_tokens(tokens)
        if not tokens:
            raise ValidationError("No permissions given.", {"permissions": ["Select at least one permission."]})
        payload = self.client.add_permissions(user_id, tokens, bearer_token=self._token(actor))
        logger.info("%s granted %s to %s", actor.id, ", ".join(tokens), user_id)
        self._after_mutation(actor, user_id)
        return message_of(payload, "Permissions added successfully")

    def revoke_permissions(self, actor: Principal, user_id: str, tokens: Iterable[str]) -> str:
        user_id = self._require_user(user_id)
        tokens = _clean_tokens(tokens)
        if not tokens:
            raise ValidationError("No permissions given.", {"permissions": ["Select at least one permission."]})
        payload = self.client.remove_permissions(user_id, tokens, bearer_token=self._token(actor))
        logger.info("%s revoked %s from %s", actor.id, ", ".join(tokens), user_id)
        self._after_mutation(actor, user_id)
        return message_of(payload, "Permissions removed successfully")

    def reset_permissions(self, actor: Principal, user_id: str) -> str:
        user_id = self._require_user(user_id)
        payload = self.client.reset_permissions(user_id, bearer_token=self._token(actor))
        logger.info("%s reset custom permissions of %s", actor.id, user_id)
        self._after_mutation(actor, user_id)
        return message_of(payload, "Permissions reset successfully")

    def bulk_assign_role(self, actor: Principal, user_ids: Iterable[str], role: str) -> BulkAssignOutcome:
        user_ids = _clean_ids(user_ids)
        if not user_ids:
            raise ValidationError("No users given.", {"userIds": ["Select at least one user."]})
        role = self._require_role(actor, role)
        payload = self.client.bulk_assign_role(user_ids, role, bearer_token=self._token(actor))
        outcome = to_bulk_outcome(user_ids, payload)
        logger.info(
            "%s bulk-assigned role %s: %d succeeded, %d failed",
            actor.id,
            role,
            len(outcome.succeeded),
            len(outcome.failed),
        )
        for user_id in outcome.succeeded:
            self._after_mutation(actor, user_id)
        return outcome

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def validate_role_transition(self, actor: Principal, user_id: str, new_role: str) -> RoleTransitionCheck:
        user_id = self._require_user(user_id)
        new_role = str(new_role or "").strip()
        if not new_role:
            raise ValidationError("A role is required.", {"newRole": ["This field is required."]})
        payload = self.client.validate_role_change(user_id, new_role, bearer_token=self._token(actor))
        return to_role_transition_check(payload)

    def analyze_permissions(self, actor: Principal, user_id: str) -> PermissionAnalysis:
        user_id = self._require_user(user_id)
        payload = self.client.get_permission_analysis(user_id, bearer_token=self._token(actor))
        return to_permission_analysis(user_id, payload)
