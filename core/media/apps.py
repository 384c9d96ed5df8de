"""
Media App Configuration

Uploads to the S3 compatible media host (images, documents, videos) and the
transformation presets served through the resize endpoint.

Author: Agency Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class MediaConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.media"
    label = "media"
    verbose_name = "Media"
