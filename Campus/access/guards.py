from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Iterable, Union

from .cache import PermissionCache
from .catalog import (
    BLOG_CREATE,
    COURSE_CREATE,
    COURSE_EDIT,
    DEFAULT_ROLE_LEVELS,
    SYSTEM_ADMIN,
)
from .contracts import GuardDecision, GuardState, PermissionSnapshot, Principal
from .exceptions import AccessError
from .resolver import has_all, has_any, has_token

logger = logging.getLogger(__name__)

LevelLookup = Callable[[str], Union[int, None]]


@dataclass(frozen=True, slots=True)
class OpenGate:
    """No restriction beyond having resolved permissions."""


@dataclass(frozen=True, slots=True)
class TokenGate:
    tokens: tuple[str, ...]
    require_all: bool = False


@dataclass(frozen=True, slots=True)
class RoleGate:
    # A trailing "+" means "this role or any more senior one".
    roles: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class EitherGate:
    """Passes when either the token gate or the role gate passes."""

    tokens: TokenGate
    roles: RoleGate


Gate = Union[OpenGate, TokenGate, RoleGate, EitherGate]

OPEN_GATE = OpenGate()


def _as_names(value: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(value)


def build_gate(
    permission: str | None = None,
    permissions: str | Iterable[str] | None = None,
    roles: str | Iterable[str] | None = None,
    require_all: bool = False,
) -> Gate:
    # An explicitly empty list is a gate of its own, not the absence of one.
    token_gate = None
    if permission is not None or permissions is not None:
        tokens: tuple[str, ...] = ()
        if permission is not None:
            tokens += _as_names(permission)
        if permissions is not None:
            tokens += _as_names(permissions)
        token_gate = TokenGate(tokens=tokens, require_all=require_all)
    role_gate = RoleGate(roles=_as_names(roles)) if roles is not None else None
    if token_gate is not None and role_gate is not None:
        return EitherGate(tokens=token_gate, roles=role_gate)
    return token_gate or role_gate or OPEN_GATE


ROLE_PREDICATES: dict[str, Callable[[PermissionSnapshot], bool]] = {
    "super-admin": lambda s: s.role == "super-admin",
    "admin": lambda s: s.role == "admin" or has_token(s, SYSTEM_ADMIN),
    "author": lambda s: s.role == "author" or has_any(s, (BLOG_CREATE, COURSE_CREATE)),
    "instructor": lambda s: has_any(s, (COURSE_CREATE, COURSE_EDIT)),
    "student": lambda s: s.role == "student",
}


def role_matches(snapshot: PermissionSnapshot, role: str, level_of: LevelLookup | None = None) -> bool:
    if role.endswith("+"):
        level_of = level_of or DEFAULT_ROLE_LEVELS.get
        required = level_of(role[:-1])
        current = level_of(snapshot.role)
        if required is None or current is None:
            return False
        return current >= required
    predicate = ROLE_PREDICATES.get(role)
    if predicate is not None:
        return predicate(snapshot)
    return snapshot.role == role


def evaluate_gate(gate: Gate, snapshot: PermissionSnapshot | None, level_of: LevelLookup | None = None) -> bool:
    if snapshot is None:
        return False
    if isinstance(gate, OpenGate):
        return True
    if isinstance(gate, TokenGate):
        if len(gate.tokens) == 1:
            return has_token(snapshot, gate.tokens[0])
        if gate.require_all:
            return has_all(snapshot, gate.tokens)
        return has_any(snapshot, gate.tokens)
    if isinstance(gate, RoleGate):
        return any(role_matches(snapshot, role, level_of) for role in gate.roles)
    if isinstance(gate, EitherGate):
        return evaluate_gate(gate.tokens, snapshot, level_of) or evaluate_gate(gate.roles, snapshot, level_of)
    raise TypeError(f"Unsupported gate: {gate!r}")


class PermissionGuard:
    """
    Decision point backed by the shared permission cache.

    A guard never fetches on its own: when no snapshot is cached it asks the
    cache for one, which coalesces with any resolution already running.
    """

    def __init__(
        self,
        cache: PermissionCache,
        gate: Gate = OPEN_GATE,
        *,
        redirect_to: str | None = None,
        level_of: LevelLookup | None = None,
    ) -> None:
        self.cache = cache
        self.gate = gate
        self.redirect_to = redirect_to
        self.level_of = level_of

    def _deny(self, reason: str, snapshot: PermissionSnapshot | None = None) -> GuardDecision:
        return GuardDecision(
            state=GuardState.DENY,
            reason=reason,
            snapshot=snapshot,
            redirect_to=self.redirect_to,
        )

    def _decide(self, snapshot: PermissionSnapshot) -> GuardDecision:
        if evaluate_gate(self.gate, snapshot, self.level_of):
            return GuardDecision(state=GuardState.ALLOW, snapshot=snapshot)
        return self._deny("Required permission missing.", snapshot)

    def evaluate(self, principal: Principal, *, wait: bool = True, timeout: float | None = None) -> GuardDecision:
        if principal.is_anonymous:
            return self._deny("Not authenticated.")

        snapshot = self.cache.peek(principal.id)
        if snapshot is not None:
            return self._decide(snapshot)

        failed = self.cache.failure(principal.id)
        if failed is not None:
            return self._deny(f"Permissions unavailable: {failed}")

        future = self.cache.ensure(principal)
        if not wait and not future.done():
            return GuardDecision(state=GuardState.LOADING, reason="Resolving permissions.")
        try:
            snapshot = future.result(timeout=timeout)
        except FutureTimeout:
            return GuardDecision(state=GuardState.LOADING, reason="Resolving permissions.")
        except AccessError as exc:
            logger.info("Guard denied %s: %s", principal.id, exc)
            return self._deny(f"Permissions unavailable: {exc}")
        except Exception:
            logger.exception("Permission resolution for %s raised unexpectedly", principal.id)
            return self._deny("Permissions unavailable.")
        return self._decide(snapshot)
