import logging

from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .emails import EmailDeliveryError, EmailService
from .models import Notification
from .serializers import EmailRequestSerializer, NotificationSerializer
from .services import NotificationService
from .throttling import EmailRateThrottle

logger = logging.getLogger(__name__)


class NotificationListView(generics.ListAPIView):
    """Latest 20 notifications of the current user."""
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    pagination_class = None

    def get_queryset(self):
        return NotificationService.latest(self.request.user)


class NotificationUnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"unread": NotificationService.unread_count(request.user)})


class NotificationMarkReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk: int):
        notification = get_object_or_404(Notification, pk=pk, user=request.user)
        NotificationService.mark_as_read(notification)
        return Response(NotificationSerializer(notification).data)


class NotificationMarkAllReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = NotificationService.mark_all_as_read(request.user)
        return Response({"status": "ok", "updated": updated})


class SendEmailView(APIView):
    """
    Dispatch a templated transactional e-mail: ``{type, to, data}``.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [EmailRateThrottle]

    def post(self, request):
        serializer = EmailRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data
        try:
            result = EmailService.send(payload["type"], payload["to"], payload["data"])
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except EmailDeliveryError as exc:
            return Response(
                {"detail": "Internal Server Error", "error": str(exc)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(result.as_dict())
