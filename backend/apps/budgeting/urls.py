from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import BudgetViewSet, CostCenterViewSet

router = DefaultRouter()
router.register(r'cost-centers', CostCenterViewSet, basename='cost-centers')
router.register(r'budgets', BudgetViewSet, basename='budgets')

urlpatterns = [
    path('', include(router.urls)),
]
