import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db import transaction

from .models import AdminActivity

logger = logging.getLogger(__name__)

MAX_USER_AGENT = 512


def get_client_ip(request):
    """Get the client's IP address from the request, or None if it is not one."""
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR")
    if not ip:
        return None
    try:
        validate_ipv46_address(ip)
    except ValidationError:
        logger.warning("Ignoring malformed client address %r", ip[:64])
        return None
    return ip


def _log_failure(exc, record):
    logger.error(
        "Failed to log admin action %s on %s %s",
        record["action"],
        record["target_type"],
        record["target_id"],
        exc_info=exc,
    )


def log_admin_action(admin, action, target_type, target_id, details=None,
                     request=None, on_error=None):
    """Record an administrative mutation in the audit trail.

    The write is deferred until the caller's transaction commits, runs in its
    own transaction, and never raises: failures go to ``on_error(exc, record)``
    (default: log the traceback). Nothing is written if the caller's
    transaction rolls back.
    """
    record = {
        "admin_id": getattr(admin, "pk", admin),
        "action": action,
        "target_type": target_type,
        "target_id": str(target_id),
        "details": details or {},
    }
    if request is not None:
        record["ip_address"] = get_client_ip(request)
        record["user_agent"] = request.META.get("HTTP_USER_AGENT", "")[:MAX_USER_AGENT]

    handle_error = on_error or _log_failure

    def write():
        try:
            with transaction.atomic():
                AdminActivity.objects.create(**record)
        except Exception as exc:
            handle_error(exc, record)
            return
        logger.info(
            "Admin action: %s on %s %s by %s",
            action, target_type, record["target_id"], record["admin_id"],
        )

    transaction.on_commit(write)
