from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Budget, CostCenter, CostCenterUsage

User = get_user_model()


class CostCenterSerializer(serializers.ModelSerializer):
    parent = serializers.PrimaryKeyRelatedField(queryset=CostCenter.objects.all(), required=False, allow_null=True)
    allowed_users = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), many=True, required=False)
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)
    children_count = serializers.SerializerMethodField()

    class Meta:
        model = CostCenter
        fields = [
            "id",
            "code",
            "name",
            "description",
            "parent",
            "parent_code",
            "children_count",
            "budget",
            "budget_year",
            "budget_limit",
            "allowed_users",
            "approver_email",
            "releaser_email",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def get_children_count(self, obj):
        return obj.children.count()

    def validate_parent(self, value):
        company = self.context.get("company")
        if value is not None and company is not None and value.company_id != company.pk:
            raise serializers.ValidationError("O centro de custo pai deve pertencer à mesma empresa.")
        return value


class BudgetSerializer(serializers.ModelSerializer):
    cost_center_code = serializers.CharField(source="cost_center.code", read_only=True)

    class Meta:
        model = Budget
        fields = ["id", "cost_center", "cost_center_code", "year", "amount", "created_at", "updated_at"]
        read_only_fields = ["cost_center", "created_at", "updated_at"]


class SetBudgetSerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"))


class CostCenterUsageSerializer(serializers.ModelSerializer):
    class Meta:
        model = CostCenterUsage
        fields = ["id", "cost_center", "month_key", "amount", "updated_at"]
        read_only_fields = fields
