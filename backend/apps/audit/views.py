from django.utils.dateparse import parse_datetime, parse_date
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from apps.permissions.drf_permissions import HasPermission
from shared.company_context import get_company_for_request

from .models import AuditLog
from .serializers import AuditLogSerializer

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


def _parse_moment(value):
    if not value:
        return None
    if len(value) == 10:
        return parse_date(value)
    return parse_datetime(value)


class AuditLogListView(generics.ListAPIView):
    """
    Latest audit entries of the selected company.

    Filters: ``user``, ``entity``, ``entity_id``, ``action``, ``start``, ``end``
    and ``limit`` (default 50).
    """
    permission_classes = [IsAuthenticated, HasPermission]
    permission_code = "audit_logs.view"
    serializer_class = AuditLogSerializer
    pagination_class = None

    def get_queryset(self):
        company = get_company_for_request(self.request, required=True)
        params = self.request.query_params
        qs = AuditLog.objects.filter(company=company).select_related("user")
        if params.get("user"):
            qs = qs.filter(user_id=params["user"])
        if params.get("entity"):
            qs = qs.filter(entity_type=params["entity"])
        if params.get("entity_id"):
            qs = qs.filter(entity_id=params["entity_id"])
        if params.get("action"):
            qs = qs.filter(action=params["action"])
        start = _parse_moment(params.get("start"))
        if start:
            qs = qs.filter(timestamp__gte=start)
        end = _parse_moment(params.get("end"))
        if end:
            lookup = "timestamp__lte" if hasattr(end, "hour") else "timestamp__date__lte"
            qs = qs.filter(**{lookup: end})
        try:
            limit = int(params.get("limit") or DEFAULT_LIMIT)
        except (TypeError, ValueError):
            limit = DEFAULT_LIMIT
        return qs.order_by("-timestamp")[: max(1, min(limit, MAX_LIMIT))]
