from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.permissions.drf_permissions import HasPermission
from apps.permissions.permissions import has_permission
from shared.company_context import get_company_for_request

from .serializers import (
    ChangePasswordSerializer,
    CompanyAccessRequestSerializer,
    RoleUpdateSerializer,
    StatusUpdateSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserSummarySerializer,
)
from .services import UserAdministrationService

User = get_user_model()


class UserListView(generics.ListAPIView):
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, HasPermission]
    permission_code = "users.view"

    def get_queryset(self):
        qs = User.objects.prefetch_related("company_memberships__company").order_by("username")
        company = get_company_for_request(self.request)
        if company is not None:
            qs = qs.filter(company_memberships__company=company).distinct()
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs


class PendingUserListView(generics.ListAPIView):
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, HasPermission]
    permission_code = "users.approve"
    pagination_class = None

    def get_queryset(self):
        return UserAdministrationService.pending_approval()


class UserCreateView(generics.CreateAPIView):
    queryset = User.objects.all()
    serializer_class = UserCreateSerializer
    permission_classes = [permissions.AllowAny]


class ChangePasswordView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = request.user
        if not user.check_password(serializer.validated_data['old_password']):
            return Response({'old_password': ['Senha atual incorreta.']}, status=400)

        user.set_password(serializer.validated_data['new_password'])
        user.save(update_fields=['password'])
        return Response({'status': 'password set'})


class CurrentUserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class CompanyAccessRequestView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CompanyAccessRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = UserAdministrationService.request_company_access(
                request.user,
                serializer.validated_data["company"],
                serializer.validated_data["role"],
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(user).data)


class UserRoleUpdateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, user_id: int):
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        company = serializer.validated_data.get("company")
        if not has_permission(request.user, "users.edit", company):
            raise PermissionDenied(detail="Missing permission: users.edit")
        target = get_object_or_404(User, pk=user_id)
        try:
            UserAdministrationService.update_role(
                target,
                serializer.validated_data["role"],
                company=company,
                changed_by=request.user,
                request=request,
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(target).data)


class UserStatusUpdateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, user_id: int):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target = get_object_or_404(User, pk=user_id)
        if not has_permission(request.user, "users.approve", target.pending_company):
            raise PermissionDenied(detail="Missing permission: users.approve")
        try:
            UserAdministrationService.update_status(
                target,
                serializer.validated_data["status"],
                changed_by=request.user,
                request=request,
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(target).data)


class UsersByRoleView(generics.ListAPIView):
    """
    Users of the selected company holding any of ``?roles=a,b``; used to
    pick approvers and authorizers.
    """
    serializer_class = UserSummarySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        company = get_company_for_request(self.request, required=True)
        roles = [r.strip() for r in (self.request.query_params.get("roles") or "").split(",") if r.strip()]
        return UserAdministrationService.users_by_role(company, roles)
