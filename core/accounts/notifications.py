import logging

from .models import UserNotification

logger = logging.getLogger(__name__)


def notify(
    user,
    title: str,
    message: str = "",
    notification_type: str = UserNotification.Type.INFO,
    related_type: str = "",
    related_id: str = "",
):
    """
    Create a notification for ``user``.

    With a related object the call is idempotent: the same
    (user, type, related_type, related_id) yields the existing row.

    Returns:
        (notification, created) or (None, False) without a user
    """
    if user is None:
        return None, False

    if not related_id:
        notification = UserNotification.objects.create(
            user=user,
            title=title,
            message=message,
            notification_type=notification_type,
        )
        return notification, True

    notification, created = UserNotification.objects.get_or_create(
        user=user,
        notification_type=notification_type,
        related_type=related_type,
        related_id=str(related_id),
        defaults={"title": title, "message": message},
    )
    if created:
        logger.info(
            "Notification '%s' created for user %s (%s=%s)",
            title,
            user.pk,
            related_type,
            related_id,
        )
    return notification, created
