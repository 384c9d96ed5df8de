"""
Payment Models

Models:
- PaymentLog: local mirror of a payment at the processor (intent, checkout
  session or invoice), the row webhook events reconcile against
- StripeEvent: journal of received webhook events keyed by the processor's
  event id; a row without error marks the event as applied

Amounts are stored in minor units (cents), as the processor reports them.

Author: Agency Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


class PaymentLog(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        REQUIRES_ACTION = "requires_action", _("Requires action")
        SUCCEEDED = "succeeded", _("Succeeded")
        FAILED = "failed", _("Failed")
        CANCELED = "canceled", _("Canceled")
        EXPIRED = "expired", _("Expired")
        REFUNDED = "refunded", _("Refunded")

    class PaymentType(models.TextChoices):
        DEPOSIT = "deposit", _("Deposit")
        FINAL = "final", _("Final payment")
        INVOICE = "invoice", _("Invoice")
        OTHER = "other", _("Other")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    project = models.ForeignKey(
        "crm.ClientProject",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    payment_intent_id = models.CharField(max_length=255, blank=True, default="")
    checkout_session_id = models.CharField(max_length=255, blank=True, default="")
    invoice_id = models.CharField(max_length=255, blank=True, default="")
    charge_id = models.CharField(max_length=255, blank=True, default="")
    customer_id = models.CharField(max_length=255, blank=True, default="")
    amount = models.PositiveIntegerField(default=0)
    currency = models.CharField(max_length=3, default="eur")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_type = models.CharField(
        max_length=20, choices=PaymentType.choices, default=PaymentType.OTHER
    )
    description = models.CharField(max_length=500, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True)
    refund_id = models.CharField(max_length=255, blank=True, default="")
    refund_amount = models.PositiveIntegerField(null=True, blank=True)
    refund_reason = models.CharField(max_length=255, blank=True)
    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="issued_refunds",
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_intent_id"],
                condition=~Q(payment_intent_id=""),
                name="unique_payment_intent",
            ),
            models.UniqueConstraint(
                fields=["checkout_session_id"],
                condition=~Q(checkout_session_id=""),
                name="unique_checkout_session",
            ),
            models.UniqueConstraint(
                fields=["invoice_id"],
                condition=~Q(invoice_id=""),
                name="unique_invoice",
            ),
        ]
        indexes = [models.Index(fields=["status", "-created_at"], name="payment_status_created_idx")]

    def __str__(self) -> str:
        reference = self.payment_intent_id or self.checkout_session_id or self.invoice_id
        return f"{reference or self.pk} {self.amount / 100:.2f} {self.currency.upper()} ({self.status})"

    @property
    def external_id(self) -> str:
        return self.payment_intent_id or self.checkout_session_id or self.invoice_id


class StripeEvent(models.Model):
    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100, db_index=True)
    data = models.JSONField(default=dict)
    processed_at = models.DateTimeField(null=True, blank=True)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event_type} ({self.event_id})"

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None and not self.error
