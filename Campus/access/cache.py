from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from django.core.cache import cache

from .contracts import PermissionSnapshot, Principal
from .exceptions import Unauthenticated
from .resolver import PermissionResolver
from .settings import get_access_settings

logger = logging.getLogger(__name__)


def _settled(*, result: Any = None, exception: BaseException | None = None) -> Future:
    future: Future = Future()
    if exception is not None:
        future.set_exception(exception)
    else:
        future.set_result(result)
    return future


class PermissionCache:
    """
    Process-wide holder of resolved permission snapshots.

    Snapshots live in a Django cache backend without a timeout and are only
    ever replaced wholesale or deleted. Resolutions run on a small worker pool;
    concurrent requests for the same principal share one in-flight future.
    """

    def __init__(
        self,
        resolver: PermissionResolver | None = None,
        *,
        backend: Any = None,
        namespace: str | None = None,
        retry_after_seconds: int | None = None,
        workers: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = get_access_settings()
        self.resolver = resolver or PermissionResolver()
        self.backend = backend if backend is not None else cache
        self.namespace = namespace or config.cache_prefix
        self.retry_after_seconds = (
            config.retry_after_seconds if retry_after_seconds is None else retry_after_seconds
        )
        self._clock = clock
        self._executor = ThreadPoolExecutor(
            max_workers=workers or config.resolve_workers,
            thread_name_prefix="permission-resolve",
        )
        self._lock = threading.Lock()
        self._inflight: dict[str, Future] = {}
        self._generations: dict[str, int] = {}
        self._failures: dict[str, tuple[float, BaseException]] = {}

    def _key(self, principal_id: str) -> str:
        return f"{self.namespace}:snapshot:{principal_id}"

    def _alias_key(self, user_id: str) -> str:
        return f"{self.namespace}:principals:{user_id}"

    def principals_for(self, user_id: str) -> frozenset[str]:
        """Principal ids whose stored snapshot belongs to the backend user `user_id`."""
        value = self.backend.get(self._alias_key(user_id))
        return frozenset(value) if isinstance(value, (set, frozenset)) else frozenset()

    def peek(self, principal_id: str) -> PermissionSnapshot | None:
        if not principal_id:
            return None
        value = self.backend.get(self._key(principal_id))
        return value if isinstance(value, PermissionSnapshot) else None

    def failure(self, principal_id: str) -> BaseException | None:
        """Error of the most recent resolution, while it still blocks retries."""
        with self._lock:
            return self._recent_failure(principal_id)

    def _recent_failure(self, principal_id: str) -> BaseException | None:
        entry = self._failures.get(principal_id)
        if entry is None:
            return None
        failed_at, exc = entry
        if self._clock() - failed_at >= self.retry_after_seconds:
            return None
        return exc

    def is_resolving(self, principal_id: str) -> bool:
        with self._lock:
            return principal_id in self._inflight

    def ensure(self, principal: Principal) -> Future:
        """
        Future of the principal's snapshot, starting a resolution only when no
        snapshot is stored, none is in flight and no recent attempt failed.
        """
        if principal.is_anonymous:
            return _settled(exception=Unauthenticated("No authenticated principal."))

        snapshot = self.peek(principal.id)
        if snapshot is not None:
            return _settled(result=snapshot)

        with self._lock:
            inflight = self._inflight.get(principal.id)
            if inflight is not None:
                logger.debug("Joining in-flight permission resolution for %s", principal.id)
                return inflight
            failed = self._recent_failure(principal.id)
            if failed is not None:
                return _settled(exception=failed)
            # Another thread may have stored a snapshot since the first peek.
            snapshot = self.peek(principal.id)
            if snapshot is not None:
                return _settled(result=snapshot)
            generation = self._generations.get(principal.id, 0)
            future = self._executor.submit(self._resolve_and_store, principal, generation)
            self._inflight[principal.id] = future
        return future

    def get(self, principal: Principal, timeout: float | None = None) -> PermissionSnapshot:
        return self.ensure(principal).result(timeout=timeout)

    def refresh(self, principal: Principal, timeout: float | None = None) -> PermissionSnapshot:
        self.invalidate(principal.id)
        return self.get(principal, timeout=timeout)

    def invalidate(self, principal_id: str) -> None:
        """
        Drop the snapshot stored under `principal_id`, and every snapshot whose
        backend user id is `principal_id` when login names differ from it.
        """
        if not principal_id:
            return
        with self._lock:
            targets = {principal_id} | self.principals_for(principal_id)
            self.backend.delete(self._alias_key(principal_id))
            for target in targets:
                self._generations[target] = self._generations.get(target, 0) + 1
                self._inflight.pop(target, None)
                self._failures.pop(target, None)
                self.backend.delete(self._key(target))
        logger.info("Invalidated permission snapshots for %s", ", ".join(sorted(targets)))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _resolve_and_store(self, principal: Principal, generation: int) -> PermissionSnapshot:
        # Runs on the worker pool. The registry entry is settled here, before
        # waiters wake up, so a later ensure() sees the snapshot or the failure.
        try:
            snapshot = self.resolver.resolve(principal)
        except Exception as exc:
            with self._lock:
                if self._generations.get(principal.id, 0) == generation:
                    self._inflight.pop(principal.id, None)
                    self._failures[principal.id] = (self._clock(), exc)
            logger.warning("Permission resolution failed for %s: %s", principal.id, exc)
            raise

        with self._lock:
            if self._generations.get(principal.id, 0) == generation:
                self.backend.set(self._key(principal.id), snapshot, timeout=None)
                if snapshot.user_id and snapshot.user_id != principal.id:
                    aliases = self.principals_for(snapshot.user_id) | {principal.id}
                    self.backend.set(self._alias_key(snapshot.user_id), set(aliases), timeout=None)
                self._inflight.pop(principal.id, None)
                self._failures.pop(principal.id, None)
            else:
                logger.info("Discarding permission snapshot for %s resolved before invalidation", principal.id)
        return snapshot
