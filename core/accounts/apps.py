"""
Accounts App Configuration

Users, profiles with editorial roles, JWT cookie authentication, login
lockout, password reset and user notifications.

Author: Agency Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.accounts"
    label = "accounts"
    verbose_name = "Accounts"
