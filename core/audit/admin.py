from django.contrib import admin

from .models import AdminActivityLog, AdminAlert


@admin.register(AdminActivityLog)
class AdminActivityLogAdmin(admin.ModelAdmin):
    list_display = ["created_at", "user", "action", "entity_type", "entity_id", "ip_address"]
    list_filter = ["action", "entity_type", "created_at"]
    search_fields = ["action", "entity_id", "user__username"]
    readonly_fields = [f.name for f in AdminActivityLog._meta.fields]


@admin.register(AdminAlert)
class AdminAlertAdmin(admin.ModelAdmin):
    list_display = ["title", "alert_type", "severity", "is_resolved", "created_at"]
    list_filter = ["alert_type", "severity", "is_resolved"]
    search_fields = ["title", "message", "related_id"]
    readonly_fields = ["created_at", "resolved_at"]
