from __future__ import annotations

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.mixins import CompanyScopedMixin

from .models import Budget, CostCenter
from .serializers import BudgetSerializer, CostCenterSerializer, SetBudgetSerializer
from .services import BudgetService, CostCenterService, UsageService


def _year_param(request):
    raw = request.query_params.get("year")
    if raw and raw.isdigit():
        return int(raw)
    return None


class CostCenterViewSet(CompanyScopedMixin, viewsets.ModelViewSet):
    queryset = CostCenter.objects.select_related("parent").prefetch_related("allowed_users")
    serializer_class = CostCenterSerializer

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        if self.request.query_params.get("active") in ("true", "false"):
            queryset = queryset.filter(is_active=self.request.query_params["active"] == "true")
        if self.request.query_params.get("mine") == "true" and not self.request.user.is_global_admin:
            queryset = queryset.filter(allowed_users=self.request.user) | queryset.filter(allowed_users__isnull=True)
        return queryset.distinct()

    def list(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("cost_centers.view")
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("cost_centers.view")
        return super().retrieve(request, *args, **kwargs)

    def _save(self, serializer, instance, perm_code):
        company = self.ensure_perm(perm_code)
        data = dict(serializer.validated_data)
        allowed_users = data.pop("allowed_users", None)
        instance = instance or CostCenter(company=company)
        for field, value in data.items():
            setattr(instance, field, value)
        try:
            cost_center = CostCenterService.save(
                instance, user=self.request.user, allowed_users=allowed_users, request=self.request
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(cost_center).data)

    def create(self, request, *args, **kwargs):  # type: ignore[override]
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = self._save(serializer, None, "cost_centers.create")
        if response.status_code == status.HTTP_200_OK:
            response.status_code = status.HTTP_201_CREATED
        return response

    def update(self, request, *args, **kwargs):  # type: ignore[override]
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=kwargs.pop("partial", False))
        serializer.is_valid(raise_exception=True)
        return self._save(serializer, instance, "cost_centers.edit")

    def destroy(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("cost_centers.delete")
        try:
            CostCenterService.delete(self.get_object(), user=request.user, request=request)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], url_path="available-balance")
    def available_balance(self, request, pk=None):
        self.ensure_perm("cost_centers.view")
        balance = CostCenterService.available_balance(self.get_object(), _year_param(request))
        return Response(balance.as_dict())

    @action(detail=True, methods=["get"])
    def usage(self, request, pk=None):
        self.ensure_perm("cost_centers.view")
        year = _year_param(request) or timezone.localdate().year
        return Response({"year": year, "months": UsageService.usage_by_cost_center(self.get_object(), year)})

    @action(detail=True, methods=["get", "post"])
    def budgets(self, request, pk=None):
        cost_center = self.get_object()
        if request.method == "GET":
            self.ensure_perm("cost_centers.view")
            return Response(BudgetSerializer(cost_center.budgets.all(), many=True).data)
        self.ensure_perm("cost_centers.edit")
        payload = SetBudgetSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            budget = BudgetService.set_budget(
                cost_center,
                payload.validated_data["year"],
                payload.validated_data["amount"],
                user=request.user,
                request=request,
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(BudgetSerializer(budget).data)

    @action(detail=False, methods=["get"])
    def progress(self, request):
        company = self.ensure_perm("cost_centers.view")
        return Response(BudgetService.progress(company))


class BudgetViewSet(CompanyScopedMixin, viewsets.ReadOnlyModelViewSet):
    """Yearly budgets of every cost center of the active company."""
    queryset = Budget.objects.select_related("cost_center")
    serializer_class = BudgetSerializer

    def get_queryset(self):  # type: ignore[override]
        company = self.get_company()
        if company is None:
            return Budget.objects.none()
        queryset = Budget.objects.select_related("cost_center").filter(cost_center__company=company)
        year = _year_param(self.request)
        if year:
            queryset = queryset.filter(year=year)
        return queryset

    def list(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("cost_centers.view")
        return super().list(request, *args, **kwargs)
