from django.contrib import admin

from .models import (
    ChatMessage,
    ClientProject,
    ContactMessage,
    ContactMessageReply,
    NewsletterSubscriber,
    ProjectFile,
)


@admin.register(NewsletterSubscriber)
class NewsletterSubscriberAdmin(admin.ModelAdmin):
    list_display = ["email", "name", "status", "source", "subscribed_at"]
    list_filter = ["status", "source"]
    search_fields = ["email", "name"]


class ContactMessageReplyInline(admin.TabularInline):
    model = ContactMessageReply
    extra = 0
    readonly_fields = ["author", "created_at"]


@admin.register(ContactMessage)
class ContactMessageAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "subject", "status", "priority", "is_read", "created_at"]
    list_filter = ["status", "priority", "is_read"]
    search_fields = ["name", "email", "subject", "message"]
    readonly_fields = ["ip_address", "user_agent", "created_at", "updated_at"]
    inlines = [ContactMessageReplyInline]


class ProjectFileInline(admin.TabularInline):
    model = ProjectFile
    extra = 0
    readonly_fields = ["file_key", "file_url", "file_size", "content_type", "created_at"]


@admin.register(ClientProject)
class ClientProjectAdmin(admin.ModelAdmin):
    list_display = ["title", "client", "status", "budget", "deposit_paid", "final_paid", "due_date"]
    list_filter = ["status", "deposit_paid", "final_paid"]
    search_fields = ["title", "client__username", "client__email"]
    inlines = [ProjectFileInline]


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ["client", "sender", "receiver", "is_read", "created_at"]
    list_filter = ["is_read"]
    search_fields = ["client__email", "message"]
    raw_id_fields = ["client", "sender", "receiver"]
