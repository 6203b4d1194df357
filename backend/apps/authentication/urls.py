from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import EmailOrUsernameTokenObtainPairView

urlpatterns = [
    path('token/', EmailOrUsernameTokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
]
