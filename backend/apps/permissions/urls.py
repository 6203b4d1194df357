from django.urls import path

from .views import MyPermissionsView, RoleListView

urlpatterns = [
    path('me/', MyPermissionsView.as_view(), name='my-permissions'),
    path('roles/', RoleListView.as_view(), name='role-list'),
]
