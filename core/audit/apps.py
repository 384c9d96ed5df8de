"""
Audit App Configuration

Admin activity journal and operational alerts (e.g. failed payments).

Author: Agency Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class AuditConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.audit"
    label = "audit"
    verbose_name = "Audit"
