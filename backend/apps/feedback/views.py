from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.permissions.permissions import has_permission

from .models import Feedback
from .serializers import FeedbackResponseSerializer, FeedbackSerializer, FeedbackStatusSerializer
from .services import FeedbackError, FeedbackService


class FeedbackViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Feedback sent by users. Global admins see everything and answer;
    everybody else only sees what they sent.
    """
    serializer_class = FeedbackSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = Feedback.objects.select_related("responded_by")
        if not self.request.user.is_global_admin:
            queryset = queryset.filter(user=self.request.user)
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        feedback_type = self.request.query_params.get("type")
        if feedback_type:
            queryset = queryset.filter(feedback_type=feedback_type)
        return queryset

    def _ensure_admin(self):
        if not self.request.user.is_global_admin:
            raise PermissionDenied(detail="Apenas administradores podem gerenciar feedbacks.")

    def create(self, request, *args, **kwargs):
        if not has_permission(request.user, "feedback.create"):
            raise PermissionDenied(detail="Missing permission: feedback.create")
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        feedback = FeedbackService.submit(request.user, serializer.validated_data)
        return Response(self.get_serializer(feedback).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def respond(self, request, pk=None):
        self._ensure_admin()
        payload = FeedbackResponseSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            feedback = FeedbackService.respond(
                self.get_object(), payload.validated_data["response"], responded_by=request.user
            )
        except FeedbackError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(feedback).data)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        self._ensure_admin()
        payload = FeedbackStatusSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        feedback = FeedbackService.update_status(self.get_object(), payload.validated_data["status"])
        return Response(self.get_serializer(feedback).data)

    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        self._ensure_admin()
        feedback = FeedbackService.mark_read(self.get_object())
        return Response(self.get_serializer(feedback).data)

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        self._ensure_admin()
        return Response({"unread": Feedback.objects.filter(read=False).count()})
