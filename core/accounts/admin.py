from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import LoginAttempt, Profile, UserNotification

User = get_user_model()


class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    fk_name = "user"
    fieldsets = (
        ("Rolle", {"fields": ("role",)}),
        ("Profil", {"fields": ("bio", "avatar_url", "company_name", "phone", "website")}),
        (
            "Team",
            {
                "fields": (
                    "is_team_member",
                    "team_position",
                    "team_order",
                    "linkedin_url",
                    "github_url",
                    "twitter_url",
                )
            },
        ),
    )


class UserAdmin(BaseUserAdmin):
    inlines = (ProfileInline,)
    list_display = ("username", "email", "first_name", "last_name", "get_role", "is_active")
    list_select_related = ("profile",)

    @admin.display(description="Role", ordering="profile__role")
    def get_role(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.role if profile else "-"


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


@admin.register(LoginAttempt)
class LoginAttemptAdmin(admin.ModelAdmin):
    list_display = ["identifier", "ip_address", "success", "created_at"]
    list_filter = ["success", "created_at"]
    search_fields = ["identifier", "ip_address"]
    readonly_fields = ["identifier", "ip_address", "success", "created_at"]


@admin.register(UserNotification)
class UserNotificationAdmin(admin.ModelAdmin):
    list_display = ["user", "title", "notification_type", "is_read", "created_at"]
    list_filter = ["notification_type", "is_read"]
    search_fields = ["title", "user__username", "related_id"]
