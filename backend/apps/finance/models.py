from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from shared.models import CompanyAwareModel

MIN_AMOUNT = Decimal("0.01")


class TransactionType(models.TextChoices):
    PAYABLE = "payable", _("A pagar")
    RECEIVABLE = "receivable", _("A receber")


class TransactionStatus(models.TextChoices):
    DRAFT = "draft", _("Rascunho")
    PENDING_APPROVAL = "pending_approval", _("Aguardando aprovação")
    APPROVED = "approved", _("Aprovado")
    PAID = "paid", _("Pago")
    REJECTED = "rejected", _("Rejeitado")


class PaymentMethod(models.TextChoices):
    PIX = "pix", _("PIX")
    BOLETO = "boleto", _("Boleto")
    TRANSFER = "transfer", _("Transferência")
    CREDIT_CARD = "credit_card", _("Cartão de crédito")
    CASH = "cash", _("Dinheiro")


class EntityType(models.TextChoices):
    SUPPLIER = "supplier", _("Fornecedor")
    CLIENT = "client", _("Cliente")
    BOTH = "both", _("Fornecedor e cliente")


class Entity(CompanyAwareModel):
    """Supplier / client master data."""
    entity_type = models.CharField(max_length=10, choices=EntityType.choices, default=EntityType.SUPPLIER)
    name = models.CharField(max_length=255, validators=[MinLengthValidator(2)])
    document = models.CharField(max_length=20, blank=True, help_text="CPF or CNPJ")
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.CharField(max_length=500, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    bank_agency = models.CharField(max_length=20, blank=True)
    bank_account = models.CharField(max_length=30, blank=True)
    pix_key = models.CharField(max_length=120, blank=True)
    pix_key_type = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "entities"
        indexes = [
            models.Index(fields=["company", "entity_type"], name="finance_ent_company_8f2d4c_idx"),
        ]

    def __str__(self):
        return self.name


class BatchStatus(models.TextChoices):
    DRAFT = "draft", _("Rascunho")
    PENDING_APPROVAL = "pending_approval", _("Aguardando aprovação")
    APPROVED = "approved", _("Aprovado")
    APPROVAL_REJECTED = "approval_rejected", _("Rejeitado na aprovação")
    PENDING_AUTHORIZATION = "pending_authorization", _("Aguardando autorização")
    AUTHORIZED = "authorized", _("Autorizado")
    AUTHORIZATION_REJECTED = "authorization_rejected", _("Rejeitado na autorização")
    EXECUTED = "executed", _("Executado")


class PaymentBatch(CompanyAwareModel):
    """
    Group of payables that goes through approval, authorization and
    execution together. Lines are the transactions whose ``batch`` points
    here.
    """
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=30, choices=BatchStatus.choices, default=BatchStatus.DRAFT, db_index=True)
    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0"))
    approval_token = models.CharField(max_length=128, unique=True, null=True, blank=True)
    approval_token_expires_at = models.DateTimeField(null=True, blank=True)

    approver = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    approver_email = models.EmailField(blank=True)
    sent_for_approval_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    approved_at = models.DateTimeField(null=True, blank=True)
    approval_comment = models.TextField(blank=True)

    authorizer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    authorizer_email = models.EmailField(blank=True)
    sent_for_authorization_at = models.DateTimeField(null=True, blank=True)
    authorized_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    authorized_at = models.DateTimeField(null=True, blank=True)
    authorization_comment = models.TextField(blank=True)

    executed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    executed_at = models.DateTimeField(null=True, blank=True)

    rejection_reason = models.TextField(blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    return_reason = models.TextField(blank=True, help_text="Reason given when the approver returned the batch to the manager")
    rejected_transaction_ids = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "payment batches"
        indexes = [
            models.Index(fields=["company", "status"], name="finance_pay_company_1b7e3a_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.status})"


class RecurrenceFrequency(models.TextChoices):
    DAILY = "daily", _("Diária")
    WEEKLY = "weekly", _("Semanal")
    MONTHLY = "monthly", _("Mensal")
    YEARLY = "yearly", _("Anual")


class RecurringTransactionTemplate(CompanyAwareModel):
    """
    Rule that materializes a new draft transaction every ``interval``
    ``frequency`` units, starting at ``next_due_date``.
    """
    description = models.CharField(max_length=255, validators=[MinLengthValidator(3)])
    amount = models.DecimalField(max_digits=18, decimal_places=2, validators=[MinValueValidator(MIN_AMOUNT)])
    transaction_type = models.CharField(max_length=10, choices=TransactionType.choices)
    frequency = models.CharField(max_length=10, choices=RecurrenceFrequency.choices, default=RecurrenceFrequency.MONTHLY)
    interval = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    next_due_date = models.DateField(db_index=True)
    end_date = models.DateField(null=True, blank=True)
    active = models.BooleanField(default=True)
    last_generated_at = models.DateTimeField(null=True, blank=True)
    cost_center = models.ForeignKey('budgeting.CostCenter', on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    entity = models.ForeignKey(Entity, on_delete=models.SET_NULL, null=True, blank=True, related_name='recurring_templates')
    base_transaction_data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Extra transaction fields copied into every occurrence",
    )

    class Meta:
        ordering = ["next_due_date"]
        indexes = [
            models.Index(fields=["company", "active", "next_due_date"], name="finance_rec_company_6c0f9b_idx"),
        ]

    def __str__(self):
        return f"{self.description} ({self.frequency}/{self.interval})"


class Transaction(CompanyAwareModel):
    transaction_type = models.CharField(max_length=10, choices=TransactionType.choices, db_index=True)
    description = models.CharField(max_length=255, validators=[MinLengthValidator(3)])
    amount = models.DecimalField(max_digits=18, decimal_places=2, validators=[MinValueValidator(MIN_AMOUNT)])
    final_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True, help_text="Amount actually paid or received")
    discount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0"))
    interest = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0"))
    status = models.CharField(max_length=20, choices=TransactionStatus.choices, default=TransactionStatus.DRAFT, db_index=True)
    due_date = models.DateField()
    payment_date = models.DateField(null=True, blank=True)

    entity = models.ForeignKey(Entity, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    supplier_or_client = models.CharField(max_length=255, blank=True)
    cost_center = models.ForeignKey('budgeting.CostCenter', on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    request_origin = models.CharField(max_length=255, blank=True, help_text="Requester name / department")
    requested_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='requested_transactions')
    notes = models.TextField(blank=True)
    attachment_url = models.URLField(blank=True)

    installment_number = models.PositiveIntegerField(null=True, blank=True)
    installments_total = models.PositiveIntegerField(null=True, blank=True)
    installment_group = models.CharField(max_length=64, blank=True)

    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    approved_at = models.DateTimeField(null=True, blank=True)
    released_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    released_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    approval_token = models.CharField(max_length=128, unique=True, null=True, blank=True)
    approval_token_expires_at = models.DateTimeField(null=True, blank=True)

    batch = models.ForeignKey(PaymentBatch, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    batch_adjusted_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    batch_rejection_reason = models.TextField(blank=True)

    recurring_template = models.ForeignKey(
        RecurringTransactionTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='occurrences',
    )

    class Meta:
        ordering = ["due_date", "id"]
        indexes = [
            models.Index(fields=["company", "transaction_type", "status"], name="finance_tra_company_2e5a8d_idx"),
            models.Index(fields=["company", "due_date"], name="finance_tra_company_9a3c6e_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["recurring_template", "due_date"],
                condition=Q(recurring_template__isnull=False),
                name="unique_occurrence_per_template_due_date",
            ),
        ]

    def __str__(self):
        return f"{self.get_transaction_type_display()}: {self.description} ({self.amount})"

    @property
    def settled_amount(self) -> Decimal:
        """Amount used for balances: ``final_amount`` when set, else ``amount``."""
        return self.final_amount if self.final_amount is not None else self.amount

    @property
    def batch_amount(self) -> Decimal:
        """Amount shown in a batch: the approver's adjustment when present."""
        return self.batch_adjusted_amount if self.batch_adjusted_amount is not None else self.amount


class TransactionAllocation(models.Model):
    transaction = models.ForeignKey(Transaction, on_delete=models.CASCADE, related_name='allocations')
    cost_center = models.ForeignKey('budgeting.CostCenter', on_delete=models.PROTECT, related_name='allocations')
    percentage = models.DecimalField(max_digits=6, decimal_places=2)
    amount = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["transaction", "cost_center"], name="unique_allocation_per_cost_center"),
        ]

    def __str__(self):
        return f"{self.transaction_id} -> {self.cost_center_id}: {self.percentage}%"


class CompanyStats(models.Model):
    """Running company balance; written only by the balance aggregator."""
    company = models.OneToOneField('companies.Company', on_delete=models.CASCADE, related_name='stats')
    current_balance = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.CharField(max_length=50, blank=True)

    class Meta:
        verbose_name_plural = "company stats"

    def __str__(self):
        return f"{self.company_id}: {self.current_balance}"
