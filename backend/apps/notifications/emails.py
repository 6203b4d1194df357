"""
Transactional e-mail rendering and delivery.

Messages are rendered from Django templates and sent through Django's mail
framework. Delivery is simulated (logged only) when ``EMAIL_ENABLED`` is off
or no provider key is configured. Outside production every message is
redirected to ``DEV_FALLBACK_EMAIL`` when one is set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)


class EmailType:
    APPROVAL_REQUEST = "approval_request"
    STATUS_UPDATE = "status_update"
    BATCH_APPROVAL_REQUEST = "batch_approval_request"
    BATCH_AUTHORIZATION_REQUEST = "batch_authorization_request"
    FEEDBACK_NOTIFICATION = "feedback_notification"


EMAIL_DEFINITIONS: Dict[str, Dict[str, str]] = {
    EmailType.APPROVAL_REQUEST: {
        "subject": "Aprovação Necessária: {description}",
        "template": "notifications/email/approval_request.html",
    },
    EmailType.STATUS_UPDATE: {
        "subject": "Atualização de Status: {description}",
        "template": "notifications/email/status_update.html",
    },
    EmailType.BATCH_APPROVAL_REQUEST: {
        "subject": "Lote Aguardando Aprovação: {batch_name}",
        "template": "notifications/email/batch_approval_request.html",
    },
    EmailType.BATCH_AUTHORIZATION_REQUEST: {
        "subject": "Autorização Necessária: {batch_name}",
        "template": "notifications/email/batch_authorization_request.html",
    },
    EmailType.FEEDBACK_NOTIFICATION: {
        "subject": "Novo Feedback: {feedback_type_label} - {title}",
        "template": "notifications/email/feedback_notification.html",
    },
}


class EmailDeliveryError(RuntimeError):
    """Raised when the mail backend fails to deliver a message."""


class _SafeFormat(dict):
    def __missing__(self, key):
        return ""


@dataclass
class EmailResult:
    success: bool
    subject: str
    recipients: List[str] = field(default_factory=list)
    simulated: bool = False
    message: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "simulated": self.simulated,
            "subject": self.subject,
            "recipients": self.recipients,
            "message": self.message,
        }


def _as_list(to: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(to, str):
        return [to] if to else []
    return [address for address in to if address]


class EmailService:
    @staticmethod
    def render(email_type: str, data: Mapping[str, Any]):
        definition = EMAIL_DEFINITIONS.get(email_type)
        if definition is None:
            raise ValueError("Invalid email type")
        context = dict(data or {})
        subject = definition["subject"].format_map(_SafeFormat(context))
        html = render_to_string(definition["template"], context)
        return subject, html, strip_tags(html)

    @staticmethod
    def _route(recipients: List[str], subject: str):
        fallback = getattr(settings, "DEV_FALLBACK_EMAIL", "")
        if settings.APP_ENV != "production" and fallback:
            original = ", ".join(recipients)
            if recipients != [fallback]:
                logger.info("[DEV] Redirecting email from %s to %s", original, fallback)
            return [fallback], f"[TESTE - Original: {original}] {subject}"
        return recipients, subject

    @classmethod
    def send(cls, email_type: str, to: Union[str, Iterable[str]], data: Mapping[str, Any]) -> EmailResult:
        """
        Render and send one transactional e-mail.

        Raises ``ValueError`` for an unknown type or missing recipient and
        ``EmailDeliveryError`` when the backend fails.
        """
        recipients = _as_list(to)
        if not recipients:
            raise ValueError("At least one recipient is required")
        subject, html, text = cls.render(email_type, data)

        if not settings.EMAIL_ENABLED:
            logger.warning("Email sending is disabled (EMAIL_ENABLED=false). Simulating %s to %s: %s", email_type, recipients, subject)
            return EmailResult(True, subject, recipients, simulated=True, message="Email disabled (EMAIL_ENABLED=false)")
        if not settings.RESEND_API_KEY:
            logger.warning("RESEND_API_KEY is missing. Simulating %s to %s: %s", email_type, recipients, subject)
            return EmailResult(True, subject, recipients, simulated=True, message="Email simulated (API key missing)")

        recipients, subject = cls._route(recipients, subject)
        message = EmailMultiAlternatives(
            subject=subject,
            body=text,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=recipients,
        )
        message.attach_alternative(html, "text/html")
        try:
            message.send(fail_silently=False)
        except Exception as exc:
            logger.error("Email delivery failed for %s to %s: %s", email_type, recipients, exc)
            raise EmailDeliveryError(str(exc)) from exc
        logger.info("Email %s sent to %s", email_type, recipients)
        return EmailResult(True, subject, recipients)

    @classmethod
    def send_quietly(cls, email_type: str, to, data: Mapping[str, Any]) -> EmailResult:
        """Like ``send`` but never raises; used by workflows that must not roll back on mail errors."""
        try:
            return cls.send(email_type, to, data)
        except (ValueError, EmailDeliveryError) as exc:
            logger.warning("Email %s to %s not sent: %s", email_type, to, exc)
            return EmailResult(False, "", _as_list(to), message=str(exc))
        except Exception as exc:
            # Template lookup/rendering errors surface here.
            logger.exception("Email %s to %s could not be rendered", email_type, to)
            return EmailResult(False, "", _as_list(to), message=str(exc))


def public_url(path: str) -> str:
    return f"{settings.PUBLIC_APP_URL}/{path.lstrip('/')}"
