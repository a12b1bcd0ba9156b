from __future__ import annotations

from typing import Iterable

from . import catalog
from .contracts import ANONYMOUS, GuardDecision, PermissionSnapshot, Principal
from .guards import Gate, OPEN_GATE, PermissionGuard, RoleGate, build_gate, evaluate_gate
from .resolver import has_all, has_any, has_token
from .runtime import AccessRuntime, get_runtime
from .settings import get_access_settings

# Named capabilities used by templates and views.
CAPABILITIES: dict[str, Gate] = {
    "create_course": build_gate(catalog.COURSE_CREATE),
    "edit_course": build_gate(catalog.COURSE_EDIT),
    "delete_course": build_gate(catalog.COURSE_DELETE),
    "publish_course": build_gate(catalog.COURSE_PUBLISH),
    "manage_courses": build_gate(
        permissions=(catalog.COURSE_CREATE, catalog.COURSE_EDIT, catalog.COURSE_DELETE)
    ),
    "create_blog": build_gate(catalog.BLOG_CREATE),
    "edit_blog": build_gate(catalog.BLOG_EDIT),
    "delete_blog": build_gate(catalog.BLOG_DELETE),
    "publish_blog": build_gate(catalog.BLOG_PUBLISH),
    "manage_blogs": build_gate(permissions=(catalog.BLOG_CREATE, catalog.BLOG_EDIT, catalog.BLOG_DELETE)),
    "manage_users": build_gate(catalog.USER_MANAGE),
    "view_users": build_gate(catalog.USER_VIEW),
    "create_users": build_gate(catalog.USER_CREATE),
    "access_admin": build_gate(catalog.SYSTEM_ADMIN),
    "view_analytics": build_gate(catalog.ANALYTICS_VIEW),
    "manage_settings": build_gate(catalog.SETTINGS_MANAGE),
}

ROLE_CHECKS: dict[str, Gate] = {
    "super_admin": RoleGate(("super-admin",)),
    "admin": RoleGate(("admin",)),
    "author": RoleGate(("author",)),
    "student": RoleGate(("student",)),
    "instructor": RoleGate(("instructor",)),
}


def session_token(request) -> str:
    if not hasattr(request, "session"):
        return ""
    token = request.session.get(get_access_settings().session_token_key)
    return token.strip() if isinstance(token, str) else ""


def attach_token(request, token: str) -> None:
    """
    Store the backend bearer token issued at login on the Django session.
    Call it after `django.contrib.auth.login`, which may flush the session.
    """
    request.session[get_access_settings().session_token_key] = token


def principal_id_for(user) -> str:
    return getattr(user, "username", "") or str(user.pk)


def principal_from_request(request) -> Principal:
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return ANONYMOUS
    return Principal(id=principal_id_for(user), token=session_token(request))


class _Checks:
    """Attribute access over named gates, e.g. `access.can.create_course`."""

    def __init__(self, context: "AccessContext", gates: dict[str, Gate]) -> None:
        self._context = context
        self._gates = gates

    def __getattr__(self, name: str) -> bool:
        try:
            gate = self._gates[name]
        except KeyError:
            raise AttributeError(name) from None
        return self._context.allows(gate)

    def __getitem__(self, name: str) -> bool:
        return getattr(self, name)

    def as_dict(self) -> dict[str, bool]:
        return {name: self._context.allows(gate) for name, gate in self._gates.items()}


class AccessContext:
    """
    Per-request view of the principal's permissions.

    The snapshot is resolved on first use; every check is fail-closed and
    answers False while no snapshot is available.
    """

    def __init__(self, principal: Principal, runtime: AccessRuntime | None = None) -> None:
        self.principal = principal
        self.runtime = runtime or get_runtime()
        self._decision: GuardDecision | None = None

    @classmethod
    def for_request(cls, request, runtime: AccessRuntime | None = None) -> "AccessContext":
        return cls(principal_from_request(request), runtime)

    @property
    def decision(self) -> GuardDecision:
        if self._decision is None:
            guard = PermissionGuard(self.runtime.cache, OPEN_GATE, level_of=self.runtime.roles.level_of)
            self._decision = guard.evaluate(self.principal)
        return self._decision

    @property
    def snapshot(self) -> PermissionSnapshot | None:
        return self.decision.snapshot

    @property
    def is_authenticated(self) -> bool:
        return not self.principal.is_anonymous

    @property
    def role(self) -> str:
        snapshot = self.snapshot
        return snapshot.role if snapshot else ""

    @property
    def permissions(self) -> frozenset[str]:
        snapshot = self.snapshot
        return snapshot.effective if snapshot else frozenset()

    def has(self, token: str) -> bool:
        return has_token(self.snapshot, token)

    def has_any(self, tokens: Iterable[str]) -> bool:
        return has_any(self.snapshot, tokens)

    def has_all(self, tokens: Iterable[str]) -> bool:
        return has_all(self.snapshot, tokens)

    def allows(self, gate: Gate) -> bool:
        return evaluate_gate(gate, self.snapshot, self.runtime.roles.level_of)

    @property
    def can(self) -> _Checks:
        return _Checks(self, CAPABILITIES)

    @property
    def is_(self) -> _Checks:
        return _Checks(self, ROLE_CHECKS)

    def forget(self) -> None:
        self._decision = None
