from django.contrib import admin

from .models import PaymentLog, StripeEvent


@admin.register(PaymentLog)
class PaymentLogAdmin(admin.ModelAdmin):
    list_display = ["external_id", "user", "project", "amount", "currency", "status", "payment_type", "created_at"]
    list_filter = ["status", "payment_type", "currency"]
    search_fields = ["payment_intent_id", "checkout_session_id", "invoice_id", "user__email"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(StripeEvent)
class StripeEventAdmin(admin.ModelAdmin):
    list_display = ["event_id", "event_type", "processed_at", "created_at"]
    list_filter = ["event_type"]
    search_fields = ["event_id", "error"]
    readonly_fields = ["event_id", "event_type", "data", "processed_at", "error", "created_at"]
