"""
Stripe Payment Façade
=====================

Thin functions over the official ``stripe`` SDK. Views and admin code call
these instead of the SDK so that amount conversion, metadata and default
URLs are handled in one place.

Amounts
-------
Callers pass amounts in major units (``Decimal("49.90")``); Stripe expects
integer minor units (``4990``). ``to_minor_units`` does the conversion with
half-up rounding, ``from_minor_units`` the reverse for responses.

Errors
------
SDK exceptions (``stripe.StripeError`` and subclasses) propagate unchanged;
the API exception handler maps them to 402/502.

Author: Agency Development Team
Version: 1.0.0
"""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import stripe
from django.conf import settings
from django.db.models import Count, Q, QuerySet, Sum
from django.utils import timezone

from .models import PaymentLog

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _client_configured() -> None:
    """Point the SDK at the key of the active environment (test or live)."""
    if not settings.STRIPE_SECRET_KEY:
        raise stripe.AuthenticationError("Stripe is not configured: no secret key set.")
    stripe.api_key = settings.STRIPE_SECRET_KEY


def to_minor_units(amount) -> int:
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValueError("Amount must be positive.")
    return int(value * 100)


def from_minor_units(amount: Optional[int]) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(CENT)


def _metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # Stripe only stores string values and rejects None
    return {str(k): str(v) for k, v in (metadata or {}).items() if v is not None}


# ---------- payments ----------


def create_payment_intent(
    amount,
    currency: Optional[str] = None,
    customer_email: str = "",
    description: str = "",
    metadata: Optional[Dict[str, Any]] = None,
    customer_id: str = "",
):
    _client_configured()
    params = {
        "amount": to_minor_units(amount),
        "currency": (currency or settings.DEFAULT_CURRENCY).lower(),
        "description": description or "Paiement prestations agence",
        "metadata": _metadata(metadata),
        "automatic_payment_methods": {"enabled": True},
    }
    if customer_email:
        params["receipt_email"] = customer_email
    if customer_id:
        params["customer"] = customer_id

    intent = stripe.PaymentIntent.create(**params)
    logger.info("PaymentIntent %s created (%s %s)", intent.id, intent.amount, intent.currency)
    return intent


def create_checkout_session(
    line_items: List[Dict[str, Any]],
    customer_email: str = "",
    success_url: str = "",
    cancel_url: str = "",
    metadata: Optional[Dict[str, Any]] = None,
):
    _client_configured()
    metadata = _metadata(metadata)
    params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": line_items,
        "success_url": success_url
        or f"{settings.FRONTEND_URL}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": cancel_url or f"{settings.FRONTEND_URL}/payment/cancel",
        "metadata": metadata,
        # copied so payment_intent.* events carry the same references
        "payment_intent_data": {"metadata": metadata},
    }
    if customer_email:
        params["customer_email"] = customer_email

    session = stripe.checkout.Session.create(**params)
    logger.info("Checkout session %s created", session.id)
    return session


def checkout_line_item(amount, payment_type: str, currency: Optional[str] = None,
                       project_label: str = "") -> Dict[str, Any]:
    """One-line checkout item named after the payment type."""
    names = {"deposit": "Acompte projet", "final": "Paiement final"}
    product_data = {"name": names.get(payment_type, "Paiement prestations agence")}
    if project_label:
        product_data["description"] = project_label
    return {
        "price_data": {
            "currency": (currency or settings.DEFAULT_CURRENCY).lower(),
            "product_data": product_data,
            "unit_amount": to_minor_units(amount),
        },
        "quantity": 1,
    }


def get_payment_status(payment_intent_id: str) -> Dict[str, Any]:
    _client_configured()
    intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    return {
        "id": intent.id,
        "status": intent.status,
        "amount": from_minor_units(intent.amount),
        "currency": intent.currency,
        "created": intent.created,
    }


def confirm_payment_intent(payment_intent_id: str, payment_method_id: str = ""):
    _client_configured()
    params = {"payment_method": payment_method_id} if payment_method_id else {}
    return stripe.PaymentIntent.confirm(payment_intent_id, **params)


def refund_payment(payment_intent_id: str, amount=None, reason: str = ""):
    """Full refund unless ``amount`` (major units) is given."""
    _client_configured()
    params: Dict[str, Any] = {"payment_intent": payment_intent_id}
    if amount is not None:
        params["amount"] = to_minor_units(amount)
    if reason:
        params["reason"] = reason
    refund = stripe.Refund.create(**params)
    logger.info("Refund %s issued for %s (%s)", refund.id, payment_intent_id, refund.amount)
    return refund


# ---------- customers ----------


def create_customer(email: str, name: str = "", phone: str = "",
                    metadata: Optional[Dict[str, Any]] = None):
    _client_configured()
    params = {"email": email, "metadata": _metadata(metadata)}
    if name:
        params["name"] = name
    if phone:
        params["phone"] = phone
    return stripe.Customer.create(**params)


def create_or_get_customer(email: str, name: str = "", user_id=None):
    """Reuse the first customer registered with ``email``."""
    _client_configured()
    existing = stripe.Customer.list(email=email, limit=1)
    if existing.data:
        return existing.data[0]
    return create_customer(email, name=name, metadata={"user_id": user_id})


def retrieve_customer(customer_id: str):
    _client_configured()
    return stripe.Customer.retrieve(customer_id)


def update_customer(customer_id: str, **fields):
    _client_configured()
    if "metadata" in fields:
        fields["metadata"] = _metadata(fields["metadata"])
    return stripe.Customer.modify(customer_id, **fields)


def list_payment_methods(customer_id: str, method_type: str = "card") -> List[Dict[str, Any]]:
    _client_configured()
    methods = stripe.PaymentMethod.list(customer=customer_id, type=method_type)
    data = []
    for pm in methods.data:
        card = pm.get("card") or {}
        data.append(
            {
                "id": pm.id,
                "brand": card.get("brand"),
                "last4": card.get("last4"),
                "exp_month": card.get("exp_month"),
                "exp_year": card.get("exp_year"),
            }
        )
    return data


# ---------- invoices & subscriptions ----------


def _days_until(due_date: Optional[date]) -> int:
    if due_date is None:
        return 30
    return max(1, (due_date - timezone.localdate()).days)


def create_invoice(
    customer_id: str,
    amount,
    description: str,
    currency: Optional[str] = None,
    due_date: Optional[date] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """
    Create, fill and finalize a ``send_invoice`` invoice.

    Steps: invoice draft -> invoice item attached to it -> finalize.
    """
    _client_configured()
    metadata = _metadata(metadata)
    invoice = stripe.Invoice.create(
        customer=customer_id,
        collection_method="send_invoice",
        days_until_due=_days_until(due_date),
        description=description,
        metadata=metadata,
    )
    stripe.InvoiceItem.create(
        customer=customer_id,
        invoice=invoice.id,
        amount=to_minor_units(amount),
        currency=(currency or settings.DEFAULT_CURRENCY).lower(),
        description=description,
    )
    finalized = stripe.Invoice.finalize_invoice(invoice.id)
    logger.info("Invoice %s finalized for customer %s", finalized.id, customer_id)
    return finalized


def create_subscription(customer_id: str, price_id: str, trial_period_days: int = 0,
                        metadata: Optional[Dict[str, Any]] = None):
    _client_configured()
    params: Dict[str, Any] = {
        "customer": customer_id,
        "items": [{"price": price_id}],
        "metadata": _metadata(metadata),
    }
    if trial_period_days > 0:
        params["trial_period_days"] = trial_period_days
    return stripe.Subscription.create(**params)


def cancel_subscription(subscription_id: str, at_period_end: bool = True):
    _client_configured()
    if at_period_end:
        return stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
    return stripe.Subscription.cancel(subscription_id)


def payment_statistics(queryset: QuerySet) -> Dict[str, Any]:
    """Totals over PaymentLog rows; amounts in major units."""
    stats = queryset.aggregate(
        total_payments=Count("id"),
        total_amount=Sum("amount"),
        successful_payments=Count("id", filter=Q(status=PaymentLog.Status.SUCCEEDED)),
        failed_payments=Count("id", filter=Q(status=PaymentLog.Status.FAILED)),
    )
    stats["total_amount"] = from_minor_units(stats["total_amount"])
    return stats
