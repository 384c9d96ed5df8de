import logging

from .models import AdminActivityLog, AdminAlert

logger = logging.getLogger(__name__)


def client_ip(request):
    if request is None:
        return None
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def log_activity(request, action: str, entity=None, entity_type: str = "", details=None):
    """
    Journal an administrative write.

    Call inside the transaction of the write it describes so both commit or
    roll back together.
    """
    user = getattr(request, "user", None)
    if user is not None and not user.is_authenticated:
        user = None
    if entity is not None:
        entity_type = entity_type or entity._meta.model_name
        entity_id = str(entity.pk)
    else:
        entity_id = ""
    return AdminActivityLog.objects.create(
        user=user,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
        ip_address=client_ip(request),
    )


def raise_alert(
    alert_type: str,
    title: str,
    message: str = "",
    severity: str = AdminAlert.Severity.MEDIUM,
    related_type: str = "",
    related_id: str = "",
):
    """Create an alert once per related object."""
    if not related_id:
        return AdminAlert.objects.create(
            alert_type=alert_type, severity=severity, title=title, message=message
        ), True
    alert, created = AdminAlert.objects.get_or_create(
        alert_type=alert_type,
        related_type=related_type,
        related_id=str(related_id),
        defaults={"severity": severity, "title": title, "message": message},
    )
    if created:
        logger.warning("Admin alert raised: %s (%s=%s)", title, related_type, related_id)
    return alert, created
