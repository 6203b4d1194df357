from django.http import JsonResponse
from django.urls import reverse


def api_root(request):
    base = request.build_absolute_uri('/')[:-1]

    def url(p):
        return f"{base}{p}"

    return JsonResponse(
        {
            "message": "Fin Control API",
            "version": "v1",
            "docs": url(reverse('swagger-ui')),
            "schema": url(reverse('schema')),
            "health": url(reverse('health-check')),
            "endpoints": {
                "auth": url('/api/v1/auth/'),
                "companies": url('/api/v1/companies/'),
                "users": url('/api/v1/users/'),
                "permissions": url('/api/v1/permissions/'),
                "audit_logs": url('/api/v1/audit-logs/'),
                "notifications": url('/api/v1/notifications/'),
                "email": url('/api/v1/email/'),
                "budgeting": url('/api/v1/budgeting/'),
                "finance": url('/api/v1/finance/'),
                "feedback": url('/api/v1/feedback/'),
            },
        }
    )
