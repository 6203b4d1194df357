from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event
from apps.notifications.models import NotificationType
from apps.notifications.services import NotificationService
from apps.permissions.roles import UserRole

from .models import UserCompanyRole, UserStatus

logger = logging.getLogger(__name__)

User = get_user_model()


class UserAdministrationService:
    """Role, status and company-access changes for user accounts."""

    @staticmethod
    def _validate_role(role: str) -> str:
        if role not in UserRole.values:
            raise ValueError(f"Invalid role: {role}")
        return role

    @classmethod
    @transaction.atomic
    def update_role(cls, user, role: str, *, company=None, changed_by=None, request=None):
        """
        Change the role of ``user``.

        With ``company`` the per-company role is set (created when missing);
        without it the global role is changed.
        """
        cls._validate_role(role)
        if company is not None:
            membership = UserCompanyRole.objects.filter(user=user, company=company).first()
            previous = membership.role if membership else None
            if membership is None:
                UserCompanyRole.objects.create(user=user, company=company, role=role, assigned_by=changed_by)
            else:
                membership.role = role
                membership.is_active = True
                membership.assigned_by = changed_by
                membership.save(update_fields=["role", "is_active", "assigned_by"])
        else:
            previous = user.role
            user.role = role
            user.save(update_fields=["role"])

        log_audit_event(
            user=changed_by,
            company=company,
            action=AuditLog.ACTION_UPDATE,
            entity_type="user",
            entity_id=user.pk,
            description=f"Role changed from {previous or '-'} to {role}",
            details={"field": "role", "previous": previous, "new": role, "company_id": getattr(company, "pk", None)},
            request=request,
        )
        logger.info("User %s role set to %s (company=%s)", user.pk, role, getattr(company, "pk", None))
        return user

    @staticmethod
    @transaction.atomic
    def remove_company_access(user, company, *, changed_by=None, request=None) -> bool:
        deleted, _ = UserCompanyRole.objects.filter(user=user, company=company).delete()
        if deleted:
            log_audit_event(
                user=changed_by,
                company=company,
                action=AuditLog.ACTION_DELETE,
                entity_type="user",
                entity_id=user.pk,
                description="Company access removed",
                details={"field": "company_roles", "company_id": company.pk},
                request=request,
            )
        return bool(deleted)

    @classmethod
    @transaction.atomic
    def update_status(cls, user, status: str, *, changed_by=None, request=None):
        """
        Change the account status.

        Activating a user with a pending company request grants the requested
        role in that company and clears the request.
        """
        if status not in UserStatus.values:
            raise ValueError(f"Invalid status: {status}")
        previous = user.status
        company = user.pending_company
        fields = ["status"]
        user.status = status
        if status == UserStatus.ACTIVE and company is not None:
            UserCompanyRole.objects.update_or_create(
                user=user,
                company=company,
                defaults={
                    "role": user.pending_role or UserRole.USER,
                    "is_active": True,
                    "assigned_by": changed_by,
                },
            )
        if status in (UserStatus.ACTIVE, UserStatus.REJECTED):
            user.pending_company = None
            user.pending_role = ""
            fields += ["pending_company", "pending_role"]
        user.save(update_fields=fields)

        if status == UserStatus.ACTIVE:
            action = AuditLog.ACTION_APPROVE
        elif status == UserStatus.REJECTED:
            action = AuditLog.ACTION_REJECT
        else:
            action = AuditLog.ACTION_UPDATE
        log_audit_event(
            user=changed_by,
            company=company,
            action=action,
            entity_type="user",
            entity_id=user.pk,
            description=f"Status changed from {previous} to {status}",
            details={"field": "status", "previous": previous, "new": status},
            request=request,
        )

        if status == UserStatus.ACTIVE:
            NotificationService.notify(
                user,
                "Acesso aprovado",
                f"Seu acesso à empresa {company.name} foi aprovado." if company else "Seu acesso foi aprovado.",
                company=company,
                notification_type=NotificationType.SUCCESS,
                link="/",
            )
        elif status == UserStatus.REJECTED:
            NotificationService.notify(
                user,
                "Acesso rejeitado",
                "Sua solicitação de acesso foi rejeitada.",
                notification_type=NotificationType.ERROR,
            )
        return user

    @classmethod
    @transaction.atomic
    def request_company_access(cls, user, company, role: str = UserRole.USER):
        """Record a request to join ``company`` and put the account on hold."""
        cls._validate_role(role)
        if role == UserRole.ADMIN:
            raise ValueError("O perfil de administrador não pode ser solicitado.")
        if not company.is_active:
            raise ValueError("Empresa inativa.")
        user.pending_company = company
        user.pending_role = role
        user.status = UserStatus.PENDING_APPROVAL
        user.save(update_fields=["pending_company", "pending_role", "status"])
        NotificationService.notify_admins(
            "Novo usuário aguardando aprovação",
            f"{user.display_name} solicitou acesso à empresa {company.name} como {UserRole(role).label}.",
            notification_type=NotificationType.WARNING,
            link="/configuracoes/usuarios",
            entity_type="user",
            entity_id=user.pk,
        )
        return user

    @staticmethod
    def users_by_role(company, roles: Iterable[str]):
        """
        Active users holding one of ``roles`` in ``company``.

        Global admins are included when ``admin`` is requested.
        """
        roles = [role for role in roles if role in UserRole.values]
        condition = Q(
            company_memberships__company=company,
            company_memberships__is_active=True,
            company_memberships__role__in=roles,
        )
        if UserRole.ADMIN in roles:
            condition |= Q(role=UserRole.ADMIN) | Q(is_superuser=True)
        return (
            User.objects.filter(condition, is_active=True)
            .distinct()
            .order_by("first_name", "last_name", "username")
        )

    @staticmethod
    def pending_approval(company: Optional[object] = None):
        qs = User.objects.filter(status=UserStatus.PENDING_APPROVAL).select_related("pending_company")
        if company is not None:
            qs = qs.filter(pending_company=company)
        return qs.order_by("date_joined")
