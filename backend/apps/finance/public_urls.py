from django.urls import path

from .views import PublicBatchApprovalView, PublicBatchAuthorizationView, PublicTransactionApprovalView

urlpatterns = [
    path('approve/<str:token>/', PublicTransactionApprovalView.as_view(), name='public-transaction-approval'),
    path('approve-batch/<str:token>/', PublicBatchApprovalView.as_view(), name='public-batch-approval'),
    path('authorize-batch/<str:token>/', PublicBatchAuthorizationView.as_view(), name='public-batch-authorization'),
]
