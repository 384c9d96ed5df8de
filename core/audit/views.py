"""
Audit Views

- AdminActivityLogViewSet: read-only journal with filters and statistics
- AdminAlertViewSet: alerts with resolve action

Both are restricted to admins.

Author: Agency Development Team
Version: 1.0.0
"""

from datetime import timedelta

from django.db import transaction
from django.db.models import Count, QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.accounts.permissions import IsAdmin
from .models import AdminActivityLog, AdminAlert
from .serializers import AdminActivityLogSerializer, AdminAlertSerializer
from .services import log_activity


class AdminActivityLogViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AdminActivityLogSerializer
    permission_classes = [IsAdmin]

    def get_queryset(self) -> QuerySet[AdminActivityLog]:
        queryset = AdminActivityLog.objects.select_related("user")
        params = self.request.query_params

        if params.get("user"):
            queryset = queryset.filter(user_id=params["user"])
        if params.get("action"):
            queryset = queryset.filter(action=params["action"])
        if params.get("entity_type"):
            queryset = queryset.filter(entity_type=params["entity_type"])

        start = parse_date(params.get("start_date") or "")
        end = parse_date(params.get("end_date") or "")
        if start:
            queryset = queryset.filter(created_at__date__gte=start)
        if end:
            queryset = queryset.filter(created_at__date__lte=end)
        return queryset

    @action(detail=False, methods=["get"])
    def stats(self, request):
        """Counts overall, for the last 24 hours, per action and per user."""
        queryset = AdminActivityLog.objects.all()
        since = timezone.now() - timedelta(hours=24)
        by_action = (
            queryset.values("action").annotate(count=Count("id")).order_by("-count")[:20]
        )
        by_user = (
            queryset.exclude(user=None)
            .values("user_id", "user__username")
            .annotate(count=Count("id"))
            .order_by("-count")[:10]
        )
        return Response(
            {
                "total": queryset.count(),
                "last_24h": queryset.filter(created_at__gte=since).count(),
                "by_action": list(by_action),
                "by_user": [
                    {"user_id": row["user_id"], "username": row["user__username"], "count": row["count"]}
                    for row in by_user
                ],
            }
        )


class AdminAlertViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AdminAlertSerializer
    permission_classes = [IsAdmin]

    def get_queryset(self) -> QuerySet[AdminAlert]:
        queryset = AdminAlert.objects.select_related("resolved_by")
        resolved = self.request.query_params.get("resolved")
        if resolved is not None:
            queryset = queryset.filter(is_resolved=resolved.lower() in ("1", "true"))
        severity = self.request.query_params.get("severity")
        if severity:
            queryset = queryset.filter(severity=severity)
        return queryset

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        alert = self.get_object()
        with transaction.atomic():
            alert.is_resolved = True
            alert.resolved_by = request.user
            alert.resolved_at = timezone.now()
            alert.save(update_fields=["is_resolved", "resolved_by", "resolved_at"])
            log_activity(request, "resolve_alert", alert, "admin_alert")
        return Response(self.get_serializer(alert).data)
