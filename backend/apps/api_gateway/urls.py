from django.urls import path, include

from apps.notifications.views import SendEmailView

from .views import api_root

urlpatterns = [
    path('', api_root, name='api-root'),
    path('v1/auth/', include('apps.authentication.urls')),
    path('v1/companies/', include('apps.companies.urls')),
    path('v1/users/', include('apps.users.urls')),
    path('v1/permissions/', include('apps.permissions.urls')),
    path('v1/audit-logs/', include('apps.audit.urls')),
    path('v1/notifications/', include('apps.notifications.urls')),
    path('v1/email/', SendEmailView.as_view(), name='send-email'),
    path('v1/budgeting/', include('apps.budgeting.urls')),
    path('v1/finance/', include('apps.finance.urls')),
    path('v1/feedback/', include('apps.feedback.urls')),
    path('v1/public/', include('apps.finance.public_urls')),
]
