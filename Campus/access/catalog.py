"""
Capability tokens offered by the portal UI, grouped by resource domain.

Tokens are opaque `resource:action` strings compared by exact match. The
backend may hand out tokens that are not listed here; they are still stored and
compared, the UI just never offers them.
"""

from __future__ import annotations

# Blog
BLOG_CREATE = "blog:create"
BLOG_READ = "blog:read"
BLOG_VIEW = "blog:view"
BLOG_EDIT = "blog:edit"
BLOG_UPDATE = "blog:update"
BLOG_DELETE = "blog:delete"
BLOG_PUBLISH = "blog:publish"

# Course
COURSE_CREATE = "course:create"
COURSE_READ = "course:read"
COURSE_VIEW = "course:view"
COURSE_EDIT = "course:edit"
COURSE_UPDATE = "course:update"
COURSE_DELETE = "course:delete"
COURSE_PUBLISH = "course:publish"

# User management
USER_CREATE = "user:create"
USER_READ = "user:read"
USER_VIEW = "user:view"
USER_EDIT = "user:edit"
USER_UPDATE = "user:update"
USER_DELETE = "user:delete"
USER_MANAGE = "user:manage"
USER_MANAGE_ROLES = "user:manage_roles"
USER_MANAGE_PERMISSIONS = "user:manage_permissions"

# Comments
COMMENT_CREATE = "comment:create"
COMMENT_READ = "comment:read"
COMMENT_UPDATE = "comment:update"
COMMENT_DELETE = "comment:delete"
COMMENT_MODERATE = "comment:moderate"

# Analytics
ANALYTICS_READ = "analytics:read"
ANALYTICS_VIEW = "analytics:view"
ANALYTICS_EXPORT = "analytics:export"

# System
SYSTEM_ADMIN = "system:admin"
SYSTEM_BACKUP = "system:backup"
SYSTEM_RESTORE = "system:restore"
SETTINGS_MANAGE = "settings:manage"

# Internships
INTERNSHIP_CREATE = "internship:create"
INTERNSHIP_READ = "internship:read"
INTERNSHIP_UPDATE = "internship:update"
INTERNSHIP_DELETE = "internship:delete"
INTERNSHIP_MANAGE = "internship:manage"

TOKENS_BY_DOMAIN: dict[str, tuple[str, ...]] = {
    "blog": (BLOG_CREATE, BLOG_READ, BLOG_VIEW, BLOG_EDIT, BLOG_UPDATE, BLOG_DELETE, BLOG_PUBLISH),
    "course": (
        COURSE_CREATE,
        COURSE_READ,
        COURSE_VIEW,
        COURSE_EDIT,
        COURSE_UPDATE,
        COURSE_DELETE,
        COURSE_PUBLISH,
    ),
    "user": (
        USER_CREATE,
        USER_READ,
        USER_VIEW,
        USER_EDIT,
        USER_UPDATE,
        USER_DELETE,
        USER_MANAGE,
        USER_MANAGE_ROLES,
        USER_MANAGE_PERMISSIONS,
    ),
    "comment": (COMMENT_CREATE, COMMENT_READ, COMMENT_UPDATE, COMMENT_DELETE, COMMENT_MODERATE),
    "analytics": (ANALYTICS_READ, ANALYTICS_VIEW, ANALYTICS_EXPORT),
    "system": (SYSTEM_ADMIN, SYSTEM_BACKUP, SYSTEM_RESTORE),
    "settings": (SETTINGS_MANAGE,),
    "internship": (
        INTERNSHIP_CREATE,
        INTERNSHIP_READ,
        INTERNSHIP_UPDATE,
        INTERNSHIP_DELETE,
        INTERNSHIP_MANAGE,
    ),
}

ALL_TOKENS: frozenset[str] = frozenset(
    token for tokens in TOKENS_BY_DOMAIN.values() for token in tokens
)

# Reference ladder, used for display and when the backend omits a level.
DEFAULT_ROLE_LEVELS: dict[str, int] = {
    "user": 1,
    "student": 2,
    "instructor": 3,
    "author": 4,
    "editor": 5,
    "moderator": 6,
    "admin": 7,
    "super-admin": 8,
}


def list_tokens() -> frozenset[str]:
    return ALL_TOKENS


def is_known_token(token: str) -> bool:
    return token in ALL_TOKENS


def domain_of(token: str) -> str:
    for domain, tokens in TOKENS_BY_DOMAIN.items():
        if token in tokens:
            return domain
    return ""
