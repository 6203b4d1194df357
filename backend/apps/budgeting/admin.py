from django.contrib import admin

from shared.formatting import format_brl

from .models import Budget, CostCenter, CostCenterUsage


class BudgetInline(admin.TabularInline):
    model = Budget
    extra = 0


@admin.register(CostCenter)
class CostCenterAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'parent', 'budget_display', 'approver_email', 'is_active', 'company']
    list_filter = ['is_active', 'company']
    search_fields = ['code', 'name']
    filter_horizontal = ['allowed_users']
    inlines = [BudgetInline]

    def budget_display(self, obj):
        return format_brl(obj.budget)

    budget_display.short_description = 'Orçamento'


@admin.register(CostCenterUsage)
class CostCenterUsageAdmin(admin.ModelAdmin):
    list_display = ['cost_center', 'month_key', 'amount', 'updated_at']
    list_filter = ['company']
    search_fields = ['cost_center__code', 'month_key']
    readonly_fields = ['company', 'cost_center', 'month_key', 'amount', 'updated_at']
