"""
Resolution of the active company for a request.

The active company is carried explicitly: it is read from the ``X-Company-ID``
header (falling back to the session) and attached to the request object only.
Services receive the company as an argument; nothing is stored in module or
settings globals.
"""
from __future__ import annotations

from typing import Optional

from rest_framework.exceptions import PermissionDenied, ValidationError

COMPANY_HEADER = "HTTP_X_COMPANY_ID"
SESSION_KEY = "active_company_id"


def _requested_company_id(request) -> Optional[str]:
    company_id = request.META.get(COMPANY_HEADER)
    if not company_id:
        session = getattr(request, "session", None)
        if session is not None:
            company_id = session.get(SESSION_KEY)
    return str(company_id).strip() if company_id else None


def get_company_for_request(request, *, required: bool = False):
    """
    Return the Company selected by the current request, or ``None``.

    The company must exist, be active and be accessible to the requesting user
    (global admins can select any company). An unknown id behaves like no
    selection; an inaccessible one is rejected with 403.
    """
    from apps.companies.models import Company  # local import to avoid circular

    if hasattr(request, "_cached_company"):
        company = request._cached_company
    else:
        company = None
        company_id = _requested_company_id(request)
        if company_id and company_id.isdigit():
            company = Company.objects.filter(pk=company_id, is_active=True).first()
        user = getattr(request, "user", None)
        if company is not None and user is not None and user.is_authenticated:
            if not user.has_company_access(company):
                raise PermissionDenied(detail="Você não tem acesso a esta empresa.")
        request._cached_company = company

    if company is None and required:
        raise ValidationError({"detail": "Active company context is required for this operation."})
    return company
