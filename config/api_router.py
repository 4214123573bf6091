from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from taskhub.tasks.api.views import TaskViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("tasks", TaskViewSet, basename="tasks")


app_name = "api"
urlpatterns = [
    path("auth/", include("taskhub.users.api.urls")),
    *router.urls,
]
