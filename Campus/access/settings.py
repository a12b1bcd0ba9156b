from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True, slots=True)
class AccessSettings:
    base_url: str
    timeout_seconds: int
    max_retries: int
    session_token_key: str
    cache_prefix: str
    retry_after_seconds: int
    resolve_workers: int
    protected_prefixes: tuple[str, ...]
    login_url: str
    service_token: str


def get_access_settings() -> AccessSettings:
    return AccessSettings(
        base_url=getattr(settings, "CAMPUS_ACCESS_API_BASE_URL", "").rstrip("/"),
        timeout_seconds=int(getattr(settings, "CAMPUS_ACCESS_API_TIMEOUT_SECONDS", 8)),
        max_retries=int(getattr(settings, "CAMPUS_ACCESS_API_MAX_RETRIES", 2)),
        session_token_key=getattr(settings, "CAMPUS_ACCESS_SESSION_TOKEN_KEY", "access_token"),
        cache_prefix=getattr(settings, "CAMPUS_ACCESS_CACHE_PREFIX", "campus:access"),
        retry_after_seconds=int(getattr(settings, "CAMPUS_ACCESS_RETRY_AFTER_SECONDS", 30)),
        resolve_workers=max(1, int(getattr(settings, "CAMPUS_ACCESS_RESOLVE_WORKERS", 4))),
        protected_prefixes=tuple(
            getattr(settings, "CAMPUS_ACCESS_PROTECTED_PREFIXES", ("/dashboard/", "/admin-panel/"))
        ),
        login_url=getattr(settings, "CAMPUS_ACCESS_LOGIN_URL", "/login/"),
        service_token=getattr(settings, "CAMPUS_ACCESS_SERVICE_TOKEN", ""),
    )
