from __future__ import annotations

import logging
from typing import Any, Dict, List

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.notifications.emails import EmailService, EmailType, public_url
from apps.notifications.models import NotificationType
from apps.notifications.services import NotificationService
from apps.permissions.roles import UserRole

from .models import Feedback, FeedbackStatus

logger = logging.getLogger(__name__)


class FeedbackError(ValueError):
    """Invalid feedback operation."""


def _admin_emails() -> List[str]:
    User = get_user_model()
    return list(
        User.objects.filter(Q(role=UserRole.ADMIN) | Q(is_superuser=True), is_active=True)
        .exclude(email="")
        .values_list("email", flat=True)
    )


class FeedbackService:

    @staticmethod
    def submit(user, data: Dict[str, Any]) -> Feedback:
        feedback = Feedback.objects.create(
            user=user,
            user_email=user.email or "",
            user_name=user.display_name,
            **data,
        )
        logger.info("Feedback %s (%s) submitted by user %s", feedback.pk, feedback.feedback_type, user.pk)

        NotificationService.notify_admins(
            f"Novo feedback: {feedback.title}",
            f"{feedback.get_feedback_type_display()} enviado por {feedback.user_name}",
            notification_type=NotificationType.INFO,
            link="/configuracoes/feedbacks",
            entity_type="feedback",
            entity_id=feedback.pk,
        )
        recipients = _admin_emails()
        if recipients:
            EmailService.send_quietly(
                EmailType.FEEDBACK_NOTIFICATION,
                recipients,
                {
                    "feedback_type_label": feedback.get_feedback_type_display(),
                    "priority": feedback.priority,
                    "priority_label": feedback.get_priority_display(),
                    "title": feedback.title,
                    "description": feedback.description,
                    "user_name": feedback.user_name,
                    "user_email": feedback.user_email,
                    "link": public_url("/configuracoes/feedbacks"),
                },
            )
        return feedback

    @staticmethod
    @transaction.atomic
    def respond(feedback: Feedback, response: str, *, responded_by) -> Feedback:
        response = (response or "").strip()
        if not response:
            raise FeedbackError("A resposta não pode ser vazia.")
        feedback.admin_response = response
        feedback.responded_by = responded_by
        feedback.responded_at = timezone.now()
        feedback.status = FeedbackStatus.RESOLVED
        feedback.read = True
        feedback.save(update_fields=[
            "admin_response", "responded_by", "responded_at", "status", "read", "updated_at",
        ])
        if feedback.user_id:
            NotificationService.notify(
                feedback.user,
                "Seu feedback foi respondido",
                f"{feedback.title}: {response}",
                notification_type=NotificationType.SUCCESS,
                link="/feedback",
                entity_type="feedback",
                entity_id=feedback.pk,
            )
        return feedback

    @staticmethod
    def update_status(feedback: Feedback, status: str) -> Feedback:
        if status not in FeedbackStatus.values:
            raise FeedbackError(f"Status inválido: {status}")
        feedback.status = status
        feedback.save(update_fields=["status", "updated_at"])
        return feedback

    @staticmethod
    def mark_read(feedback: Feedback) -> Feedback:
        if not feedback.read:
            feedback.read = True
            feedback.save(update_fields=["read", "updated_at"])
        return feedback
