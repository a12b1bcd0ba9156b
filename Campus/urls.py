from django.urls import path

from . import views

app_name = "Campus"

urlpatterns = [
    path("api/access/me/", views.my_permissions, name="my_permissions"),
    path("api/access/me/refresh/", views.refresh_my_permissions, name="refresh_my_permissions"),
    path("api/access/me/check/", views.check_my_permission, name="check_my_permission"),
    path("api/access/me/check-any/", views.check_my_permissions_any, name="check_my_permissions_any"),
    path("api/access/roles/", views.role_hierarchy, name="role_hierarchy"),
    path("api/access/users/bulk-assign-role/", views.bulk_assign_role, name="bulk_assign_role"),
    path("api/access/users/<str:user_id>/role/", views.assign_role, name="assign_role"),
    path("api/access/users/<str:user_id>/permissions/", views.user_permissions, name="user_permissions"),
    path(
        "api/access/users/<str:user_id>/permissions/analysis/",
        views.permission_analysis,
        name="permission_analysis",
    ),
    path("api/access/users/<str:user_id>/reset-permissions/", views.reset_permissions, name="reset_permissions"),
    path(
        "api/access/users/<str:user_id>/validate-role-change/",
        views.validate_role_change,
        name="validate_role_change",
    ),
]
