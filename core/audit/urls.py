from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AdminActivityLogViewSet, AdminAlertViewSet

router = DefaultRouter()
router.register(r"logs", AdminActivityLogViewSet, basename="activity-log")
router.register(r"alerts", AdminAlertViewSet, basename="admin-alert")

app_name = "audit"

urlpatterns = [
    path("", include(router.urls)),
]
