"""
Account Models

Extends Django's built-in User with a profile carrying the editorial role and
public team information, and adds the login attempt journal used for lockout
as well as user-facing notifications.

Models:
- Profile: role (member/author/editor/admin/staff), bio, avatar, team fields
- LoginAttempt: one row per login attempt, used for lockout
- UserNotification: in-app notification, idempotent per related object

Author: Agency Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils.translation import gettext_lazy as _


class Profile(models.Model):
    """
    Extended user profile.

    Created automatically for every user (see signal handlers below). The
    ``role`` drives every role-gated endpoint; superusers are treated as
    admins regardless of the stored role.
    """

    class Role(models.TextChoices):
        MEMBER = "member", _("Member")
        AUTHOR = "author", _("Author")
        EDITOR = "editor", _("Editor")
        ADMIN = "admin", _("Admin")
        STAFF = "staff", _("Staff")

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        verbose_name=_("User"),
    )
    role = models.CharField(
        max_length=20, choices=Role.choices, default=Role.MEMBER, verbose_name=_("Role")
    )
    bio = models.TextField(blank=True, verbose_name=_("Bio"))
    avatar_url = models.URLField(max_length=500, blank=True)
    avatar_key = models.CharField(max_length=500, blank=True)
    company_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    website = models.URLField(blank=True)

    # Team page
    is_team_member = models.BooleanField(default=False, verbose_name=_("Team member"))
    team_position = models.CharField(max_length=120, blank=True)
    team_order = models.PositiveIntegerField(default=0)
    linkedin_url = models.URLField(blank=True)
    github_url = models.URLField(blank=True)
    twitter_url = models.URLField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("User Profile")
        verbose_name_plural = _("User Profiles")
        ordering = ["team_order", "user__username"]
        indexes = [
            models.Index(fields=["role"], name="profile_role_idx"),
            models.Index(fields=["is_team_member", "team_order"], name="profile_team_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user.username} ({self.role})"

    @property
    def effective_role(self) -> str:
        if self.user.is_superuser:
            return self.Role.ADMIN
        return self.role


class LoginAttempt(models.Model):
    identifier = models.CharField(max_length=255, db_index=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    success = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        outcome = "ok" if self.success else "failed"
        return f"{self.identifier} {outcome} @ {self.created_at:%Y-%m-%d %H:%M}"


class UserNotification(models.Model):
    """
    In-app notification for a single user.

    When a notification points at a related object (``related_type`` +
    ``related_id``), at most one notification of a given type exists per user
    and object, so repeated producers (webhook redelivery) do not duplicate it.
    """

    class Type(models.TextChoices):
        INFO = "info", _("Info")
        SUCCESS = "success", _("Success")
        WARNING = "warning", _("Warning")
        ERROR = "error", _("Error")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    notification_type = models.CharField(
        max_length=20, choices=Type.choices, default=Type.INFO
    )
    related_type = models.CharField(max_length=50, blank=True)
    related_id = models.CharField(max_length=255, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "notification_type", "related_type", "related_id"],
                condition=~Q(related_id=""),
                name="unique_notification_per_related_object",
            )
        ]
        indexes = [models.Index(fields=["user", "is_read"], name="notification_unread_idx")]

    def __str__(self) -> str:
        return f"{self.user_id}: {self.title}"


# --- Signal Handlers for Automatic Profile Management ---


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created: bool, **kwargs) -> None:
    """
    Create the profile of a freshly created user.
    """
    if created:
        Profile.objects.get_or_create(user=instance)
