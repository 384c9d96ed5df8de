"""
Audit Models

- AdminActivityLog: append-only journal of administrative writes
- AdminAlert: operational alert raised by the system (e.g. a failed payment),
  resolved manually by an admin

Author: Agency Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


class AdminActivityLog(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activity_logs",
    )
    action = models.CharField(max_length=100, verbose_name=_("Action"))
    entity_type = models.CharField(max_length=50, blank=True)
    entity_id = models.CharField(max_length=255, blank=True)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = _("Admin Activity Log")
        verbose_name_plural = _("Admin Activity Logs")
        indexes = [models.Index(fields=["entity_type", "entity_id"], name="activity_entity_idx")]

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}#{self.entity_id}"


class AdminAlert(models.Model):
    class Severity(models.TextChoices):
        LOW = "low", _("Low")
        MEDIUM = "medium", _("Medium")
        HIGH = "high", _("High")
        CRITICAL = "critical", _("Critical")

    alert_type = models.CharField(max_length=50)
    severity = models.CharField(
        max_length=10, choices=Severity.choices, default=Severity.MEDIUM
    )
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    related_type = models.CharField(max_length=50, blank=True)
    related_id = models.CharField(max_length=255, blank=True)
    is_resolved = models.BooleanField(default=False)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_alerts",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["is_resolved", "-created_at"]
        verbose_name = _("Admin Alert")
        verbose_name_plural = _("Admin Alerts")
        constraints = [
            models.UniqueConstraint(
                fields=["alert_type", "related_type", "related_id"],
                condition=~Q(related_id=""),
                name="unique_alert_per_related_object",
            )
        ]

    def __str__(self) -> str:
        return f"[{self.severity}] {self.title}"
