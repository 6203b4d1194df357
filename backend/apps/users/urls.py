from django.urls import path

from .views import (
    ChangePasswordView,
    CompanyAccessRequestView,
    CurrentUserProfileView,
    PendingUserListView,
    UserCreateView,
    UserListView,
    UserRoleUpdateView,
    UsersByRoleView,
    UserStatusUpdateView,
)

urlpatterns = [
    path('register/', UserCreateView.as_view(), name='user-register'),
    path('change-password/', ChangePasswordView.as_view(), name='change-password'),
    path('list/', UserListView.as_view(), name='user-list'),
    path('pending/', PendingUserListView.as_view(), name='user-pending'),
    path('by-role/', UsersByRoleView.as_view(), name='user-by-role'),
    path('me/', CurrentUserProfileView.as_view(), name='user-profile'),
    path('me/request-access/', CompanyAccessRequestView.as_view(), name='user-request-access'),
    path('<int:user_id>/role/', UserRoleUpdateView.as_view(), name='user-role-update'),
    path('<int:user_id>/status/', UserStatusUpdateView.as_view(), name='user-status-update'),
]
