from __future__ import annotations

from dataclasses import dataclass

from .access import catalog
from .access.guards import OPEN_GATE, Gate, build_gate
from .access.session import AccessContext


@dataclass(frozen=True, slots=True)
class NavItem:
    label: str
    href: str
    gate: Gate = OPEN_GATE


DASHBOARD_NAVIGATION: tuple[NavItem, ...] = (
    NavItem("Dashboard", "/dashboard/"),
    NavItem("My Courses", "/dashboard/courses/"),
    NavItem("Create Course", "/dashboard/courses/create/", build_gate(catalog.COURSE_CREATE)),
    NavItem(
        "Manage Courses",
        "/dashboard/courses/manage/",
        build_gate(permissions=(catalog.COURSE_EDIT, catalog.COURSE_DELETE)),
    ),
    NavItem("Blog Posts", "/dashboard/blog/", build_gate(permissions=(catalog.BLOG_CREATE, catalog.BLOG_EDIT))),
    NavItem("Create Post", "/dashboard/blog/create/", build_gate(catalog.BLOG_CREATE)),
    NavItem("Internships", "/dashboard/internship/", build_gate(catalog.INTERNSHIP_MANAGE, roles="admin")),
    NavItem("User Management", "/dashboard/users/", build_gate(catalog.USER_MANAGE)),
    NavItem("Analytics", "/dashboard/analytics/", build_gate(catalog.ANALYTICS_VIEW)),
    NavItem("Settings", "/dashboard/settings/", build_gate(catalog.SETTINGS_MANAGE)),
)


def navigation_for(access: AccessContext, items: tuple[NavItem, ...] = DASHBOARD_NAVIGATION) -> list[NavItem]:
    """Menu entries the principal may see; nothing at all without a snapshot."""
    if access.snapshot is None:
        return []
    return [item for item in items if access.allows(item.gate)]
