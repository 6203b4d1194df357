from rest_framework.permissions import BasePermission

from shared.company_context import get_company_for_request

from .permissions import has_permission


class HasPermission(BasePermission):
    """
    DRF permission class backed by the role policy table.

    Add it to ``permission_classes`` and define ``permission_code`` on the view:

        class AuditLogListView(generics.ListAPIView):
            permission_classes = [IsAuthenticated, HasPermission]
            permission_code = "audit_logs.view"
    """

    def has_permission(self, request, view):
        permission_code = getattr(view, 'permission_code', None)
        if not permission_code:
            # Views using this class must state the capability they require.
            return False

        company = get_company_for_request(request)
        return has_permission(request.user, permission_code, company)
