from rest_framework import status
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event

from .serializers import EmailOrUsernameTokenObtainPairSerializer


class EmailOrUsernameTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailOrUsernameTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as exc:
            raise InvalidToken(exc.args[0]) from exc

        log_audit_event(
            user=serializer.user,
            company=None,
            action=AuditLog.ACTION_LOGIN,
            entity_type="user",
            entity_id=serializer.user.pk,
            description="Login",
            request=request,
        )
        return Response(serializer.validated_data, status=status.HTTP_200_OK)
