from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from apps.permissions.permissions import has_permission

from .company_context import get_company_for_request


class CompanyScopedMixin:
    """
    Viewset mixin restricting querysets to the request's active company.

    Writes go through ``ensure_perm`` with a capability code from the role
    policy table, e.g. ``self.ensure_perm("payables.approve")``.
    """
    permission_classes = [IsAuthenticated]

    def get_company(self, *, required: bool = False):
        return get_company_for_request(self.request, required=required)

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        company = self.get_company()
        if company:
            return queryset.filter(company=company)
        return queryset.none()

    def get_serializer_context(self):  # type: ignore[override]
        context = super().get_serializer_context()
        context.setdefault("request", self.request)
        context["company"] = self.get_company()
        return context

    def ensure_perm(self, perm_code: str):
        company = self.get_company(required=True)
        if not has_permission(self.request.user, perm_code, company):
            raise PermissionDenied(detail=f"Missing permission: {perm_code}")
        return company
