import logging

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event
from apps.permissions.permissions import has_permission
from shared.company_context import SESSION_KEY

from .models import Company
from .serializers import CompanyMinimalSerializer, CompanySerializer

logger = logging.getLogger(__name__)


class CompanyViewSet(viewsets.ModelViewSet):
    """
    Companies visible to the requesting user.

    Global admins see and manage every company; other users only see the
    companies where they hold an active role.
    """
    serializer_class = CompanySerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = Company.objects.all()
        if not user.is_global_admin:
            queryset = queryset.filter(
                user_roles__user=user,
                user_roles__is_active=True,
                is_active=True,
            ).distinct()

        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset.order_by('name')

    def _ensure_perm(self, code, company=None):
        if not has_permission(self.request.user, code, company):
            raise PermissionDenied(detail=f"Missing permission: {code}")

    def _audit(self, action_name, company, description):
        log_audit_event(
            user=self.request.user,
            company=company,
            action=action_name,
            entity_type='company',
            entity_id=company.pk,
            description=description,
            request=self.request,
        )

    def perform_create(self, serializer):
        self._ensure_perm('companies.create')
        company = serializer.save()
        logger.info("Company %s created by user %s", company.pk, self.request.user.pk)
        self._audit(AuditLog.ACTION_CREATE, company, f"Empresa criada: {company.name}")

    def perform_update(self, serializer):
        self._ensure_perm('companies.edit', serializer.instance)
        company = serializer.save()
        self._audit(AuditLog.ACTION_UPDATE, company, f"Empresa atualizada: {company.name}")

    def perform_destroy(self, instance):
        self._ensure_perm('companies.delete', instance)
        # Financial history is kept; deleting a company only deactivates it.
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])
        self._audit(AuditLog.ACTION_DELETE, instance, f"Empresa desativada: {instance.name}")

    @action(detail=False, methods=['get'], url_path='minimal')
    def minimal(self, request):
        """Get minimal list for dropdowns."""
        queryset = self.get_queryset().filter(is_active=True)
        return Response(CompanyMinimalSerializer(queryset, many=True).data)

    @action(detail=False, methods=['get'], url_path='active')
    def active(self, request):
        """Get the company stored in the session, falling back to the first accessible one."""
        queryset = self.get_queryset().filter(is_active=True)
        company_id = request.session.get(SESSION_KEY)
        company = queryset.filter(pk=company_id).first() if company_id else None
        if company is None:
            company = queryset.first()
            if company is not None:
                request.session[SESSION_KEY] = str(company.pk)
        if company is None:
            return Response(
                {'detail': 'Nenhuma empresa disponível para este usuário.'},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(self.get_serializer(company).data)

    @action(detail=True, methods=['post'], url_path='activate')
    def activate(self, request, pk=None):
        """Set a company as active in the session."""
        company = self.get_queryset().filter(pk=pk, is_active=True).first()
        if company is None:
            return Response(
                {'detail': 'Empresa não encontrada ou sem acesso.'},
                status=status.HTTP_404_NOT_FOUND,
            )
        request.session[SESSION_KEY] = str(company.pk)
        return Response(self.get_serializer(company).data, status=status.HTTP_200_OK)
