from __future__ import annotations

from django.conf import settings
from django.db import models


class NotificationType(models.TextChoices):
    INFO = "info", "Info"
    WARNING = "warning", "Aviso"
    SUCCESS = "success", "Sucesso"
    ERROR = "error", "Erro"


class NotificationStatus(models.TextChoices):
    UNREAD = "unread", "Não lida"
    READ = "read", "Lida"


class Notification(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    company = models.ForeignKey(
        "companies.Company",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        help_text="Empty for system-wide notices such as feedback replies",
    )
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    notification_type = models.CharField(max_length=10, choices=NotificationType.choices, default=NotificationType.INFO)
    status = models.CharField(max_length=10, choices=NotificationStatus.choices, default=NotificationStatus.UNREAD)
    link = models.CharField(max_length=500, blank=True)
    entity_type = models.CharField(max_length=100, blank=True)
    entity_id = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="notificatio_user_id_5b2c1e_idx"),
            models.Index(fields=["user", "created_at"], name="notificatio_user_id_9d4a7f_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}:{self.title}"

    @property
    def is_read(self) -> bool:
        return self.status == NotificationStatus.READ
