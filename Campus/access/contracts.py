from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class Principal:
    """Who permissions are resolved for. An empty id means anonymous."""

    id: str
    token: str = ""

    @property
    def is_anonymous(self) -> bool:
        return not self.id

    def __repr__(self) -> str:
        # Keep bearer tokens out of logs.
        return f"Principal(id={self.id!r})"


ANONYMOUS = Principal(id="")


@dataclass(frozen=True, slots=True)
class Role:
    name: str
    title: str
    level: int
    permissions: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class RoleHierarchy:
    """Roles known to the backend, ordered by level (most junior first)."""

    roles: tuple[Role, ...] = ()
    permissions: frozenset[str] = frozenset()

    def get(self, name: str) -> Role | None:
        for role in self.roles:
            if role.name == name:
                return role
        return None

    def level_of(self, name: str) -> int | None:
        role = self.get(name)
        return role.level if role else None

    def names(self) -> tuple[str, ...]:
        return tuple(role.name for role in self.roles)


@dataclass(frozen=True, slots=True)
class PermissionSnapshot:
    """Resolved permissions of one principal, as computed by the backend."""

    principal_id: str
    effective: frozenset[str]
    role: str
    role_permissions: frozenset[str] = frozenset()
    extra_permissions: frozenset[str] = frozenset()
    # Backend user id; equals principal_id unless usernames differ from backend ids.
    user_id: str = ""
    email: str = ""
    is_email_verified: bool = False
    fetched_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class PermissionCheck:
    allowed: bool
    permissions: tuple[str, ...] = ()
    matched: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PermissionAnalysis:
    user_id: str
    current_role: str
    role_permissions: frozenset[str]
    custom_permissions: frozenset[str]
    effective_permissions: frozenset[str]
    role_hierarchy: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BulkAssignResult:
    user_id: str
    success: bool
    message: str = ""


@dataclass(frozen=True, slots=True)
class BulkAssignOutcome:
    message: str
    results: tuple[BulkAssignResult, ...] = ()

    @property
    def succeeded(self) -> tuple[str, ...]:
        return tuple(r.user_id for r in self.results if r.success)

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(r.user_id for r in self.results if not r.success)


@dataclass(frozen=True, slots=True)
class RoleTransitionCheck:
    valid: bool
    message: str = ""
    warnings: tuple[str, ...] = ()


class GuardState(enum.Enum):
    LOADING = "loading"
    ALLOW = "allow"
    DENY = "deny"


@dataclass(slots=True)
class GuardDecision:
    """Outcome of one guard evaluation."""

    state: GuardState
    reason: str = ""
    snapshot: PermissionSnapshot | None = None
    redirect_to: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def allowed(self) -> bool:
        return self.state is GuardState.ALLOW

    @property
    def loading(self) -> bool:
        return self.state is GuardState.LOADING
