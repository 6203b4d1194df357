from django.contrib.auth.models import AbstractUser
from django.db import models

from apps.permissions.roles import UserRole


class UserStatus(models.TextChoices):
    PENDING_COMPANY_SETUP = "pending_company_setup", "Aguardando empresa"
    PENDING_APPROVAL = "pending_approval", "Aguardando aprovação"
    ACTIVE = "active", "Ativo"
    REJECTED = "rejected", "Rejeitado"


class User(AbstractUser):
    """
    Extended user model with per-company roles.

    ``role`` is the global role. Outside of ``admin`` it only applies when no
    company is selected; inside a company the ``UserCompanyRole`` entry wins.
    """
    companies = models.ManyToManyField(
        'companies.Company',
        through='UserCompanyRole',
        through_fields=('user', 'company'),
        related_name='users',
        blank=True,
    )
    role = models.CharField(max_length=30, choices=UserRole.choices, default=UserRole.USER)
    status = models.CharField(max_length=30, choices=UserStatus.choices, default=UserStatus.ACTIVE)
    phone = models.CharField(max_length=20, blank=True)
    department = models.CharField(max_length=120, blank=True)
    pending_company = models.ForeignKey(
        'companies.Company',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='pending_users',
        help_text='Company the user asked to join',
    )
    pending_role = models.CharField(max_length=30, choices=UserRole.choices, blank=True)

    class Meta:
        db_table = 'users'

    @property
    def global_role(self) -> str:
        if self.is_superuser:
            return UserRole.ADMIN
        return self.role

    @property
    def is_global_admin(self) -> bool:
        return self.global_role == UserRole.ADMIN

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.email or self.username

    @property
    def company_roles(self) -> dict:
        """Mapping of company id -> role for active company assignments."""
        return dict(
            self.company_memberships.filter(is_active=True).values_list('company_id', 'role')
        )

    def has_company_access(self, company) -> bool:
        """Check if user has access to company"""
        if self.is_global_admin:
            return True
        return self.company_memberships.filter(company=company, is_active=True).exists()


class UserCompanyRole(models.Model):
    """
    Role held by a user inside one company.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='company_memberships')
    company = models.ForeignKey('companies.Company', on_delete=models.CASCADE, related_name='user_roles')
    role = models.CharField(max_length=30, choices=UserRole.choices)
    is_active = models.BooleanField(default=True)
    assigned_at = models.DateTimeField(auto_now_add=True)
    assigned_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )

    class Meta:
        db_table = 'user_company_roles'
        constraints = [
            models.UniqueConstraint(fields=['user', 'company'], name='unique_user_company_role'),
        ]

    def __str__(self):
        return f"{self.user_id}@{self.company_id}:{self.role}"
