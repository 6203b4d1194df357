from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models

from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


class CostCenter(CompanyAwareModel):
    """
    Hierarchical budget-tracking unit. Transactions are allocated to cost
    centers by percentage; a parent's budget is split among its children.
    """
    parent = models.ForeignKey('self', on_delete=models.PROTECT, null=True, blank=True, related_name='children')
    name = models.CharField(max_length=255, validators=[MinLengthValidator(3)])
    code = models.CharField(max_length=30, validators=[MinLengthValidator(2)])
    description = models.TextField(blank=True)
    budget = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Allocated budget for budget_year",
    )
    budget_year = models.PositiveIntegerField(null=True, blank=True)
    budget_limit = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    allowed_users = models.ManyToManyField(
        User,
        blank=True,
        related_name='allowed_cost_centers',
        help_text="Users allowed to allocate transactions to this cost center (empty: everyone)",
    )
    approver_email = models.EmailField(blank=True)
    releaser_email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(fields=["company", "code"], name="unique_cost_center_code_per_company"),
        ]
        indexes = [
            models.Index(fields=["company", "is_active"], name="budgeting_c_company_3a9e51_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def ancestors(self):
        node = self.parent
        seen = set()
        while node is not None and node.pk not in seen:
            seen.add(node.pk)
            yield node
            node = node.parent

    def is_allowed(self, user) -> bool:
        if not self.pk:
            return True
        allowed = self.allowed_users.all()
        return not allowed.exists() or allowed.filter(pk=user.pk).exists()


class Budget(models.Model):
    """Yearly budget of a cost center."""
    cost_center = models.ForeignKey(CostCenter, on_delete=models.CASCADE, related_name='budgets')
    year = models.PositiveIntegerField()
    amount = models.DecimalField(max_digits=18, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-year"]
        constraints = [
            models.UniqueConstraint(fields=["cost_center", "year"], name="unique_budget_per_cost_center_year"),
        ]

    def __str__(self):
        return f"{self.cost_center_id}/{self.year}: {self.amount}"


class CostCenterUsage(models.Model):
    """
    Monthly payable consumption of a cost center, maintained incrementally
    as transactions change.
    """
    company = models.ForeignKey('companies.Company', on_delete=models.CASCADE, related_name='cost_center_usage')
    cost_center = models.ForeignKey(CostCenter, on_delete=models.CASCADE, related_name='usage')
    month_key = models.CharField(max_length=7, help_text="YYYY-MM")
    amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0"))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["cost_center", "month_key"]
        constraints = [
            models.UniqueConstraint(fields=["cost_center", "month_key"], name="unique_usage_per_cost_center_month"),
        ]

    def __str__(self):
        return f"{self.cost_center_id} {self.month_key}: {self.amount}"
