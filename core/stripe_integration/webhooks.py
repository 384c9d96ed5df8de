"""
Stripe Webhook Reconciler
=========================

Applies verified Stripe events to local records. Signature verification
happens in the view; this module receives the parsed event dict.

Handled event types:
- `payment_intent.succeeded`      -> PaymentLog succeeded; project deposit/final flag;
                                     notification; confirmation email
- `payment_intent.payment_failed` -> PaymentLog failed; admin alert; notification;
                                     failure email
- `payment_intent.canceled`       -> PaymentLog canceled
- `payment_intent.requires_action`-> PaymentLog requires_action
- `checkout.session.completed`    -> upsert by intent (or session) id; succeeded when paid
- `checkout.session.expired`      -> pending session rows expire
- `invoice.paid` / `invoice.payment_failed` -> upsert by invoice id
- `charge.refunded`               -> PaymentLog refunded
- subscription / customer lifecycle -> logged only

Idempotence:
- Every event is journaled in `StripeEvent` keyed by the Stripe event id.
  An id already applied without error is acknowledged as a duplicate and
  no handler runs again.
- Handlers upsert by the external payment id, notifications and alerts are
  get-or-create by related id, and emails are only sent on the first
  transition into a terminal state. Redelivery converges to the same state.

Failure policy:
- Handler writes and the journal row commit in one transaction. When a
  handler raises, that transaction rolls back, the error is stored on the
  journal row, and the exception propagates so the view answers 500 and
  Stripe redelivers later.

Author: Agency Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Callable, Dict, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.accounts.models import UserNotification
from core.accounts.notifications import notify
from core.audit.models import AdminAlert
from core.audit.services import raise_alert
from crm.models import ClientProject
from .emails import queue_payment_failed_email, queue_payment_success_email
from .models import PaymentLog, StripeEvent
from .services import from_minor_units

logger = logging.getLogger(__name__)
User = get_user_model()

PROCESSED = "processed"
DUPLICATE = "duplicate"
UNHANDLED = "unhandled"


# ---------- helpers ----------


def _user_from(metadata: Dict[str, Any]):
    user_id = metadata.get("user_id")
    if not user_id:
        return None
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        logger.warning("Stripe webhook: user %s not found", user_id)
    return user


def _project_from(metadata: Dict[str, Any]) -> Optional[ClientProject]:
    project_id = metadata.get("project_id")
    if not project_id:
        return None
    project = ClientProject.objects.filter(pk=project_id).first()
    if project is None:
        logger.warning("Stripe webhook: project %s not found", project_id)
    return project


def _payment_type(metadata: Dict[str, Any], default: str = PaymentLog.PaymentType.OTHER) -> str:
    value = metadata.get("payment_type")
    return value if value in PaymentLog.PaymentType.values else default


def _new_payment(metadata: Dict[str, Any], **fields) -> PaymentLog:
    """Unsaved PaymentLog for an event that has no local row yet."""
    return PaymentLog(
        user=_user_from(metadata),
        project=_project_from(metadata),
        payment_type=_payment_type(metadata),
        metadata=metadata,
        **fields,
    )


def _payment_for_intent(intent: Dict[str, Any]) -> PaymentLog:
    metadata = intent.get("metadata") or {}
    payment = (
        PaymentLog.objects.select_for_update()
        .filter(payment_intent_id=intent["id"])
        .first()
    )
    if payment is None:
        payment = _new_payment(
            metadata,
            payment_intent_id=intent["id"],
            amount=intent.get("amount") or 0,
            currency=intent.get("currency") or "eur",
            description=intent.get("description") or "",
        )
    payment.customer_id = intent.get("customer") or payment.customer_id
    return payment


def _mark_project_paid(payment: PaymentLog) -> None:
    project = payment.project
    if project is None:
        return
    if payment.payment_type == PaymentLog.PaymentType.DEPOSIT and not project.deposit_paid:
        project.deposit_paid = True
        project.deposit_paid_at = payment.paid_at
        project.save(update_fields=["deposit_paid", "deposit_paid_at", "updated_at"])
        logger.info("Project %s: deposit paid", project.pk)
    elif payment.payment_type == PaymentLog.PaymentType.FINAL and not project.final_paid:
        project.final_paid = True
        project.final_paid_at = payment.paid_at
        project.save(update_fields=["final_paid", "final_paid_at", "updated_at"])
        logger.info("Project %s: final payment received", project.pk)


def _mark_succeeded(payment: PaymentLog, amount: Optional[int] = None) -> bool:
    """
    Move ``payment`` to succeeded and apply the side effects.

    Returns:
        True on the first transition, False when it already was succeeded.
    """
    if payment.status == PaymentLog.Status.REFUNDED:
        logger.info("Payment %s already refunded, success ignored", payment.external_id)
        return False

    first = payment.status != PaymentLog.Status.SUCCEEDED
    payment.status = PaymentLog.Status.SUCCEEDED
    payment.paid_at = payment.paid_at or timezone.now()
    payment.error_message = ""
    if amount:
        payment.amount = amount
    payment.save()

    _mark_project_paid(payment)
    notify(
        payment.user,
        "Paiement confirmé",
        f"Votre paiement de {from_minor_units(payment.amount)} {payment.currency.upper()} a été reçu.",
        UserNotification.Type.SUCCESS,
        related_type="payment",
        related_id=payment.external_id,
    )
    if first:
        queue_payment_success_email(payment)
    return first


def _mark_failed(payment: PaymentLog, error_message: str) -> bool:
    first = payment.status != PaymentLog.Status.FAILED
    payment.status = PaymentLog.Status.FAILED
    payment.failed_at = payment.failed_at or timezone.now()
    payment.error_message = error_message
    payment.save()

    raise_alert(
        "payment_failed",
        "Échec de paiement",
        f"{payment.external_id}: {from_minor_units(payment.amount)} "
        f"{payment.currency.upper()} - {error_message or 'unknown error'}",
        AdminAlert.Severity.HIGH,
        related_type="payment",
        related_id=payment.external_id,
    )
    notify(
        payment.user,
        "Échec du paiement",
        error_message or "Votre paiement n'a pas pu aboutir.",
        UserNotification.Type.ERROR,
        related_type="payment",
        related_id=payment.external_id,
    )
    if first:
        queue_payment_failed_email(payment)
    return first


# ---------- payment intents ----------


def handle_payment_intent_succeeded(intent: Dict[str, Any]) -> None:
    payment = _payment_for_intent(intent)
    payment.charge_id = intent.get("latest_charge") or payment.charge_id
    _mark_succeeded(payment, amount=intent.get("amount_received"))
    logger.info("payment_intent.succeeded %s", intent["id"])


def handle_payment_intent_failed(intent: Dict[str, Any]) -> None:
    payment = _payment_for_intent(intent)
    error = (intent.get("last_payment_error") or {}).get("message") or ""
    _mark_failed(payment, error)
    logger.warning("payment_intent.payment_failed %s: %s", intent["id"], error)


def handle_payment_intent_canceled(intent: Dict[str, Any]) -> None:
    payment = _payment_for_intent(intent)
    payment.status = PaymentLog.Status.CANCELED
    payment.canceled_at = payment.canceled_at or timezone.now()
    payment.save()


def handle_payment_intent_requires_action(intent: Dict[str, Any]) -> None:
    payment = _payment_for_intent(intent)
    payment.status = PaymentLog.Status.REQUIRES_ACTION
    payment.save()


# ---------- checkout sessions ----------


def handle_checkout_session_completed(session: Dict[str, Any]) -> None:
    """
    Upsert the payment of a completed checkout session.

    The row is keyed by the payment intent id when the session has one,
    else by the session id. A pending row logged at session creation and a
    row created by an earlier payment_intent event are merged into the
    latter.
    """
    metadata = session.get("metadata") or {}
    intent_id = session.get("payment_intent") or ""
    rows = PaymentLog.objects.select_for_update()

    by_intent = rows.filter(payment_intent_id=intent_id).first() if intent_id else None
    by_session = rows.filter(checkout_session_id=session["id"]).first()
    if by_intent is not None and by_session is not None and by_intent.pk != by_session.pk:
        by_session.delete()
    payment = by_intent or by_session
    if payment is None:
        payment = _new_payment(metadata)

    payment.checkout_session_id = session["id"]
    payment.payment_intent_id = intent_id or payment.payment_intent_id
    payment.customer_id = session.get("customer") or payment.customer_id
    payment.amount = session.get("amount_total") or payment.amount
    payment.currency = session.get("currency") or payment.currency
    payment.metadata = {**(payment.metadata or {}), **metadata}
    if payment.user is None:
        payment.user = _user_from(metadata)
    if payment.project is None:
        payment.project = _project_from(metadata)
    if payment.payment_type == PaymentLog.PaymentType.OTHER:
        payment.payment_type = _payment_type(metadata)

    if session.get("payment_status") == "paid":
        _mark_succeeded(payment)
    else:
        payment.save()
    logger.info("checkout.session.completed %s (%s)", session["id"], session.get("payment_status"))


def handle_checkout_session_expired(session: Dict[str, Any]) -> None:
    expired = PaymentLog.objects.filter(
        checkout_session_id=session["id"], status=PaymentLog.Status.PENDING
    ).update(status=PaymentLog.Status.EXPIRED, updated_at=timezone.now())
    logger.info("checkout.session.expired %s (%s row(s))", session["id"], expired)


# ---------- invoices ----------


def _payment_for_invoice(invoice: Dict[str, Any]) -> PaymentLog:
    metadata = invoice.get("metadata") or {}
    payment = PaymentLog.objects.select_for_update().filter(invoice_id=invoice["id"]).first()
    if payment is None:
        payment = _new_payment(
            metadata,
            invoice_id=invoice["id"],
            amount=invoice.get("amount_due") or 0,
            currency=invoice.get("currency") or "eur",
            description=invoice.get("description") or "",
        )
        payment.payment_type = _payment_type(metadata, PaymentLog.PaymentType.INVOICE)
    payment.customer_id = invoice.get("customer") or payment.customer_id
    payment.payment_intent_id = payment.payment_intent_id or (invoice.get("payment_intent") or "")
    return payment


def handle_invoice_paid(invoice: Dict[str, Any]) -> None:
    payment = _payment_for_invoice(invoice)
    _mark_succeeded(payment, amount=invoice.get("amount_paid"))
    logger.info("invoice.paid %s", invoice["id"])


def handle_invoice_payment_failed(invoice: Dict[str, Any]) -> None:
    payment = _payment_for_invoice(invoice)
    error = (invoice.get("last_finalization_error") or {}).get("message") or "Invoice payment failed"
    _mark_failed(payment, error)
    logger.warning("invoice.payment_failed %s", invoice["id"])


# ---------- refunds ----------


def handle_charge_refunded(charge: Dict[str, Any]) -> None:
    intent_id = charge.get("payment_intent") or ""
    rows = PaymentLog.objects.select_for_update()
    payment = rows.filter(payment_intent_id=intent_id).first() if intent_id else None
    if payment is None:
        payment = rows.filter(charge_id=charge["id"]).first()
    if payment is None:
        logger.warning("charge.refunded %s: no local payment", charge["id"])
        return

    payment.status = PaymentLog.Status.REFUNDED
    payment.charge_id = charge["id"]
    payment.refund_amount = charge.get("amount_refunded") or payment.amount
    payment.refunded_at = payment.refunded_at or timezone.now()
    payment.save()
    logger.info("charge.refunded %s (%s)", charge["id"], payment.refund_amount)


def log_only(obj: Dict[str, Any]) -> None:
    logger.info("Stripe object %s (%s) noted", obj.get("id"), obj.get("object"))


EVENT_HANDLERS: Dict[str, Callable[[Dict[str, Any]], None]] = {
    "payment_intent.succeeded": handle_payment_intent_succeeded,
    "payment_intent.payment_failed": handle_payment_intent_failed,
    "payment_intent.canceled": handle_payment_intent_canceled,
    "payment_intent.requires_action": handle_payment_intent_requires_action,
    "checkout.session.completed": handle_checkout_session_completed,
    "checkout.session.expired": handle_checkout_session_expired,
    "invoice.paid": handle_invoice_paid,
    "invoice.payment_failed": handle_invoice_payment_failed,
    "charge.refunded": handle_charge_refunded,
    "invoice.created": log_only,
    "invoice.finalized": log_only,
    "customer.created": log_only,
    "customer.updated": log_only,
    "customer.deleted": log_only,
    "customer.subscription.created": log_only,
    "customer.subscription.updated": log_only,
    "customer.subscription.deleted": log_only,
}


# ---------- entrypoint ----------


def _already_processed(event_id: str) -> bool:
    return StripeEvent.objects.filter(
        event_id=event_id, processed_at__isnull=False, error=""
    ).exists()


def process_event(event: Dict[str, Any]) -> str:
    """
    Apply one verified event.

    Args:
        event: parsed event payload (``id``, ``type``, ``data.object``)

    Returns:
        "processed", "duplicate" or "unhandled"

    Raises:
        whatever the handler raised, after the error has been journaled
    """
    event_id = event["id"]
    event_type = event["type"]

    if _already_processed(event_id):
        logger.info("[webhook] duplicate %s (event_id=%s)", event_type, event_id)
        return DUPLICATE

    handler = EVENT_HANDLERS.get(event_type)
    logger.info("[webhook] %s (event_id=%s)", event_type, event_id)

    try:
        with transaction.atomic():
            if handler is None:
                logger.info("Unhandled event type: %s", event_type)
                result = UNHANDLED
            else:
                handler(event["data"]["object"])
                result = PROCESSED
            StripeEvent.objects.update_or_create(
                event_id=event_id,
                defaults={
                    "event_type": event_type,
                    "data": event,
                    "processed_at": timezone.now(),
                    "error": "",
                },
            )
    except IntegrityError as exc:
        # a concurrent delivery of the same event committed first
        if _already_processed(event_id):
            logger.info("[webhook] %s applied by a concurrent delivery", event_id)
            return DUPLICATE
        _record_failure(event, event_type, exc)
        raise
    except Exception as exc:
        _record_failure(event, event_type, exc)
        raise
    return result


def _record_failure(event: Dict[str, Any], event_type: str, exc: Exception) -> None:
    logger.exception("Error handling event %s (event_id=%s)", event_type, event["id"])
    StripeEvent.objects.update_or_create(
        event_id=event["id"],
        defaults={
            "event_type": event_type,
            "data": event,
            "processed_at": None,
            "error": f"{type(exc).__name__}: {exc}"[:2000],
        },
    )
