from __future__ import annotations

from django.conf import settings
from django.db import models


class FeedbackType(models.TextChoices):
    BUG = "bug", "Bug"
    IMPROVEMENT = "improvement", "Melhoria"
    QUESTION = "question", "Dúvida"
    PRAISE = "praise", "Elogio"


class FeedbackStatus(models.TextChoices):
    PENDING = "pending", "Pendente"
    IN_REVIEW = "in_review", "Em análise"
    RESOLVED = "resolved", "Resolvido"
    WONT_FIX = "wont_fix", "Não será corrigido"


class FeedbackPriority(models.TextChoices):
    LOW = "low", "Baixa"
    MEDIUM = "medium", "Média"
    HIGH = "high", "Alta"
    CRITICAL = "critical", "Crítica"


SYSTEM_FEATURES = (
    ("dashboard", "Dashboard"),
    ("contas_pagar", "Contas a pagar"),
    ("contas_receber", "Contas a receber"),
    ("centros_custo", "Centros de custo"),
    ("recorrencias", "Recorrências"),
    ("lotes", "Lotes de pagamento"),
    ("relatorios", "Relatórios"),
    ("configuracoes", "Configurações"),
    ("cadastros", "Cadastros"),
    ("outro", "Outro"),
)


class Feedback(models.Model):
    """Bug report, suggestion or question sent by a user to the administrators."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="feedbacks")
    user_email = models.EmailField(blank=True)
    user_name = models.CharField(max_length=255, blank=True)
    feedback_type = models.CharField(max_length=20, choices=FeedbackType.choices)
    priority = models.CharField(max_length=20, choices=FeedbackPriority.choices, default=FeedbackPriority.MEDIUM)
    related_features = models.JSONField(default=list, blank=True)
    title = models.CharField(max_length=255)
    description = models.TextField()
    screenshot_url = models.URLField(blank=True)
    error_context = models.JSONField(null=True, blank=True, help_text="Error message, URL and time when sent from an error screen")
    status = models.CharField(max_length=20, choices=FeedbackStatus.choices, default=FeedbackStatus.PENDING)
    read = models.BooleanField(default=False)
    admin_response = models.TextField(blank=True)
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="feedback_fe_status_3d7a2b_idx"),
        ]

    def __str__(self) -> str:
        return f"[{self.feedback_type}] {self.title}"
