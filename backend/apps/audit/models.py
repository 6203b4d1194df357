from django.conf import settings
from django.db import models


class AuditLog(models.Model):
    ACTION_CREATE = 'create'
    ACTION_UPDATE = 'update'
    ACTION_DELETE = 'delete'
    ACTION_LOGIN = 'login'
    ACTION_APPROVE = 'approve'
    ACTION_REJECT = 'reject'
    ACTION_AUTHORIZE = 'authorize'
    ACTION_EXECUTE = 'execute'

    ACTION_CHOICES = [
        (ACTION_CREATE, 'Criação'),
        (ACTION_UPDATE, 'Atualização'),
        (ACTION_DELETE, 'Exclusão'),
        (ACTION_LOGIN, 'Login'),
        (ACTION_APPROVE, 'Aprovação'),
        (ACTION_REJECT, 'Rejeição'),
        (ACTION_AUTHORIZE, 'Autorização'),
        (ACTION_EXECUTE, 'Execução'),
    ]

    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    user_email = models.CharField(max_length=255, blank=True, help_text="Actor e-mail, kept when the user is deleted or anonymous")
    company = models.ForeignKey('companies.Company', on_delete=models.CASCADE, null=True, blank=True)
    entity_type = models.CharField(max_length=100, help_text="Type of entity affected (e.g., 'transaction', 'payment_batch', 'user')")
    entity_id = models.CharField(max_length=255, help_text="ID of the entity affected")
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    description = models.TextField(blank=True)
    details = models.JSONField(null=True, blank=True, help_text="Changed fields, previous values or step metadata")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ['-timestamp']
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"
        indexes = [
            models.Index(fields=['company', 'timestamp'], name='audit_audit_company_7c1f2a_idx'),
            models.Index(fields=['company', 'entity_type', 'entity_id'], name='audit_audit_company_4e8b9d_idx'),
        ]

    def __str__(self):
        return f"{self.timestamp}: {self.user_email or self.user_id} {self.action} {self.entity_type}:{self.entity_id}"
