"""
Stripe Integration AppConfig

The reconciler is called directly by the webhook view, so ``ready()`` has no
signal wiring to do.

Author: Agency Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class StripeIntegrationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.stripe_integration"
    label = "stripe_integration"
    verbose_name = "Stripe Integration"
