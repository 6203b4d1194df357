from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .models import AuditLog

logger = logging.getLogger(__name__)


def client_context(request) -> Dict[str, Optional[str]]:
    """IP address and user agent of ``request``, for audit entries."""
    if request is None:
        return {"ip_address": None, "user_agent": ""}
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else request.META.get("REMOTE_ADDR")
    return {
        "ip_address": ip_address or None,
        "user_agent": (request.META.get("HTTP_USER_AGENT") or "")[:500],
    }


def log_audit_event(
    *,
    user,
    company,
    action: str,
    entity_type: str,
    entity_id,
    description: str = "",
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: str = "",
    request=None,
) -> Optional[AuditLog]:
    """
    Persist an audit log entry.

    Audit failures never block the audited action: errors are logged and
    ``None`` is returned.
    """
    if request is not None and ip_address is None:
        context = client_context(request)
        ip_address = context["ip_address"]
        user_agent = user_agent or context["user_agent"]
    actor = user if getattr(user, "is_authenticated", False) else None
    try:
        return AuditLog.objects.create(
            user=actor,
            user_email=getattr(actor, "email", "") or "",
            company=company,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            description=description,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except Exception:
        logger.exception("Failed to write audit log %s %s:%s", action, entity_type, entity_id)
        return None
