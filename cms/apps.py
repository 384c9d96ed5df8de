"""
CMS App Configuration

Editorial content of the agency website: rubriques, articles with threaded
comments, blog, service offers, testimonials and the team page.

Author: Agency Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class CmsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cms"
    verbose_name = "Content"
