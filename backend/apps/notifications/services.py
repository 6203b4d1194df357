from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils import timezone

from apps.permissions.roles import UserRole

from .models import Notification, NotificationStatus, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    @staticmethod
    def notify(
        user,
        title: str,
        body: str = "",
        *,
        company=None,
        notification_type: str = NotificationType.INFO,
        link: str = "",
        entity_type: str = "",
        entity_id="",
    ) -> Optional[Notification]:
        if not user or not getattr(user, "id", None):
            return None
        return Notification.objects.create(
            user=user,
            company=company,
            title=title,
            body=body,
            notification_type=notification_type,
            link=link,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else "",
        )

    @classmethod
    def notify_many(cls, users: Iterable, title: str, body: str = "", **kwargs) -> int:
        created = 0
        for user in users:
            if cls.notify(user, title, body, **kwargs):
                created += 1
        return created

    @classmethod
    def notify_admins(cls, title: str, body: str = "", **kwargs) -> int:
        User = get_user_model()
        admins = User.objects.filter(Q(role=UserRole.ADMIN) | Q(is_superuser=True), is_active=True)
        return cls.notify_many(admins, title, body, **kwargs)

    @staticmethod
    def latest(user, limit: int = 20):
        return Notification.objects.filter(user=user).order_by("-created_at")[:limit]

    @staticmethod
    def unread_count(user) -> int:
        return Notification.objects.filter(user=user, status=NotificationStatus.UNREAD).count()

    @staticmethod
    def mark_as_read(notification: Notification) -> Notification:
        if notification.status != NotificationStatus.READ:
            notification.status = NotificationStatus.READ
            notification.read_at = timezone.now()
            notification.save(update_fields=["status", "read_at"])
        return notification

    @staticmethod
    def mark_all_as_read(user) -> int:
        updated = Notification.objects.filter(user=user, status=NotificationStatus.UNREAD).update(
            status=NotificationStatus.READ,
            read_at=timezone.now(),
        )
        logger.debug("Marked %s notifications as read for user %s", updated, user.pk)
        return updated
