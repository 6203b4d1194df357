from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from shared.views import HealthCheckView

admin.site.site_header = "Fin Control"
admin.site.site_title = "Fin Control"

urlpatterns = [
    path('', RedirectView.as_view(url='/api/', permanent=False), name='home'),
    path('admin/', admin.site.urls),
    path('api/', include('apps.api_gateway.urls')),
    # API schema & docs
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('health/', HealthCheckView.as_view(), name='health-check'),
]
