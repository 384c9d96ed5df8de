"""
Templated Email Delivery

All outgoing mail goes through ``send_templated_email``: an HTML template and
its plain-text sibling (``<name>.html`` / ``<name>.txt`` under
``templates/emails/``) are rendered and sent with Django's ``send_mail``.

Delivery is fire-and-forget. A failing SMTP server is logged and never
propagates into the request or webhook that triggered the mail.
``queue_templated_email`` defers the send until the surrounding transaction
has committed, so rolled back state changes never announce themselves.

Author: Agency Development Team
Version: 1.0.0
"""

import logging
from typing import Iterable, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.template.loader import render_to_string
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from django.contrib.auth.tokens import default_token_generator

logger = logging.getLogger(__name__)


def send_templated_email(
    subject: str, template: str, context: dict, recipients: Iterable[str]
) -> bool:
    recipients = [r for r in recipients if r]
    if not recipients:
        logger.info("Email '%s' skipped: no recipient", template)
        return False

    context = {"frontend_url": settings.FRONTEND_URL, **context}
    try:
        html_body = render_to_string(f"emails/{template}.html", context)
        text_body = render_to_string(f"emails/{template}.txt", context)
        send_mail(
            subject,
            text_body,
            settings.DEFAULT_FROM_EMAIL,
            recipients,
            html_message=html_body,
        )
    except Exception:
        logger.exception("Email '%s' to %s could not be sent", template, recipients)
        return False

    logger.info("Email '%s' sent to %s", template, recipients)
    return True


def queue_templated_email(
    subject: str, template: str, context: dict, recipients: Iterable[str]
) -> None:
    """Send after the current transaction commits."""
    recipients = list(recipients)
    transaction.on_commit(
        lambda: send_templated_email(subject, template, context, recipients)
    )


def send_password_reset_email(user, token: Optional[str] = None) -> bool:
    token = token or default_token_generator.make_token(user)
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    reset_url = f"{settings.FRONTEND_URL}/reset-password?uid={uid}&token={token}"
    return send_templated_email(
        "Réinitialisation de votre mot de passe",
        "password_reset",
        {"user": user, "reset_url": reset_url},
        [user.email],
    )
