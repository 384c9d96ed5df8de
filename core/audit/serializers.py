from rest_framework import serializers

from .models import AdminActivityLog, AdminAlert


class AdminActivityLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True, default=None)

    class Meta:
        model = AdminActivityLog
        fields = [
            "id",
            "user",
            "username",
            "action",
            "entity_type",
            "entity_id",
            "details",
            "ip_address",
            "created_at",
        ]
        read_only_fields = fields


class AdminAlertSerializer(serializers.ModelSerializer):
    resolved_by_username = serializers.CharField(
        source="resolved_by.username", read_only=True, default=None
    )

    class Meta:
        model = AdminAlert
        fields = [
            "id",
            "alert_type",
            "severity",
            "title",
            "message",
            "related_type",
            "related_id",
            "is_resolved",
            "resolved_by",
            "resolved_by_username",
            "resolved_at",
            "created_at",
        ]
        read_only_fields = fields
