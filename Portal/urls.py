from django.urls import include, path

urlpatterns = [
    path("", include("Campus.urls")),
]
