from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .viewsets import (
    EntityViewSet,
    PaymentBatchViewSet,
    RecurringTemplateViewSet,
    ReportViewSet,
    TransactionViewSet,
)

router = DefaultRouter()
router.register(r'entities', EntityViewSet)
router.register(r'transactions', TransactionViewSet)
router.register(r'recurring-templates', RecurringTemplateViewSet)
router.register(r'batches', PaymentBatchViewSet)
router.register(r'reports', ReportViewSet, basename='finance-reports')

urlpatterns = [
    path('', include(router.urls)),
]
