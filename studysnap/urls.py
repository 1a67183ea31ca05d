from django.urls import include, path

urlpatterns = [
    path("", include("mastery.api.urls")),
]
