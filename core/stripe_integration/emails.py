"""Payment confirmation and failure mails, queued after the webhook transaction commits."""

import logging

from core.accounts.emails import queue_templated_email
from .services import from_minor_units

logger = logging.getLogger(__name__)


def _context(payment) -> dict:
    user = payment.user
    return {
        "payment": payment,
        "first_name": (user.first_name or user.username) if user else "",
        "amount": from_minor_units(payment.amount),
        "currency": payment.currency.upper(),
        "project_title": payment.project.title if payment.project_id else "",
    }


def _recipient(payment) -> str:
    if payment.user is not None and payment.user.email:
        return payment.user.email
    return (payment.metadata or {}).get("customer_email", "")


def _queue(subject: str, template: str, payment) -> None:
    recipient = _recipient(payment)
    if not recipient:
        logger.warning("No recipient for payment %s, %s mail skipped", payment.external_id, template)
        return
    queue_templated_email(subject, template, _context(payment), [recipient])


def queue_payment_success_email(payment) -> None:
    _queue("Paiement confirmé", "payment_success", payment)


def queue_payment_failed_email(payment) -> None:
    _queue("Échec du paiement", "payment_failed", payment)
