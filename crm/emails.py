"""Contact form mails, sent after commit through the shared templated mailer."""

from django.conf import settings

from core.accounts.emails import queue_templated_email


def queue_contact_notification(contact) -> None:
    """Tell the agency inbox about a new contact message."""
    if not settings.ADMIN_NOTIFICATION_EMAIL:
        return
    queue_templated_email(
        f"Nouveau message de contact : {contact.subject or contact.name}",
        "contact_received",
        {"contact": contact},
        [settings.ADMIN_NOTIFICATION_EMAIL],
    )


def queue_contact_reply(contact, reply) -> None:
    queue_templated_email(
        f"Re: {contact.subject or 'Votre message'}",
        "contact_reply",
        {"contact": contact, "reply": reply},
        [contact.email],
    )
