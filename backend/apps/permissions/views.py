from rest_framework import generics, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from shared.company_context import get_company_for_request

from .permissions import get_permission_set
from .roles import ROLE_DESCRIPTIONS, UserRole


class MyPermissionsView(APIView):
    """Capability map of the current user for the selected company."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        company = get_company_for_request(request)
        payload = get_permission_set(request.user, company).as_dict()
        payload["company"] = company.pk if company else None
        return Response(payload)


class RoleListView(generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        data = [
            {
                'code': role.value,
                'name': role.label,
                'description': ROLE_DESCRIPTIONS[role],
            }
            for role in UserRole
        ]
        return Response({'results': data})
