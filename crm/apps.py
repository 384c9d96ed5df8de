"""
CRM App Configuration

Client relationship: newsletter, contact inbox and client projects.

Author: Agency Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class CrmConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "crm"
    verbose_name = "Client Relationship"
