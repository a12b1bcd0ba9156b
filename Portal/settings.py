"""
Django settings for the Portal project.

Values come from the environment; the defaults suit local development and tests.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = _env_list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")
CSRF_TRUSTED_ORIGINS = _env_list("DJANGO_CSRF_TRUSTED_ORIGINS")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "Campus.apps.CampusConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "Campus.middleware.AccessGuardMiddleware",
]

ROOT_URLCONF = "Portal.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
                "Campus.context_processors.access",
            ],
        },
    },
]

WSGI_APPLICATION = "Portal.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DJANGO_SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "campus-default",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_TZ = True
STATIC_URL = "static/"

# Access backend (REST authority for roles and permissions).
CAMPUS_ACCESS_API_BASE_URL = os.getenv("CAMPUS_ACCESS_API_BASE_URL", "")
CAMPUS_ACCESS_API_TIMEOUT_SECONDS = int(os.getenv("CAMPUS_ACCESS_API_TIMEOUT_SECONDS", "8"))
CAMPUS_ACCESS_API_MAX_RETRIES = int(os.getenv("CAMPUS_ACCESS_API_MAX_RETRIES", "2"))
CAMPUS_ACCESS_SESSION_TOKEN_KEY = "access_token"
CAMPUS_ACCESS_CACHE_PREFIX = "campus:access"
CAMPUS_ACCESS_RETRY_AFTER_SECONDS = int(os.getenv("CAMPUS_ACCESS_RETRY_AFTER_SECONDS", "30"))
CAMPUS_ACCESS_RESOLVE_WORKERS = int(os.getenv("CAMPUS_ACCESS_RESOLVE_WORKERS", "4"))
CAMPUS_ACCESS_PROTECTED_PREFIXES = ("/dashboard/", "/admin-panel/")
CAMPUS_ACCESS_LOGIN_URL = "/login/"
CAMPUS_ACCESS_SERVICE_TOKEN = os.getenv("CAMPUS_ACCESS_SERVICE_TOKEN", "")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "Campus": {"handlers": ["console"], "level": os.getenv("CAMPUS_LOG_LEVEL", "INFO")},
        "campus.startup": {"handlers": ["console"], "level": "INFO"},
    },
}
