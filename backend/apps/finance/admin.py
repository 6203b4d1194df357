from django.contrib import admin
from django.utils.html import format_html

from shared.formatting import format_brl

from .models import (
    CompanyStats,
    Entity,
    PaymentBatch,
    RecurringTransactionTemplate,
    Transaction,
    TransactionAllocation,
)

STATUS_COLORS = {
    'draft': 'gray',
    'pending_approval': 'orange',
    'approved': 'blue',
    'approval_rejected': 'red',
    'pending_authorization': 'orange',
    'authorized': 'purple',
    'authorization_rejected': 'red',
    'executed': 'green',
    'paid': 'green',
    'rejected': 'red',
}


def _badge(status, label):
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
        STATUS_COLORS.get(status, 'gray'),
        label,
    )


@admin.register(Entity)
class EntityAdmin(admin.ModelAdmin):
    list_display = ['name', 'entity_type', 'document', 'email', 'is_active', 'company']
    list_filter = ['entity_type', 'is_active', 'company']
    search_fields = ['name', 'document', 'email']


class TransactionAllocationInline(admin.TabularInline):
    model = TransactionAllocation
    extra = 0
    readonly_fields = ['amount']


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = [
        'description', 'transaction_type', 'colored_amount',
        'due_date', 'status_badge', 'batch', 'company'
    ]
    list_filter = ['transaction_type', 'status', 'payment_method', 'company']
    search_fields = ['description', 'supplier_or_client']
    date_hierarchy = 'due_date'
    inlines = [TransactionAllocationInline]
    readonly_fields = ['approved_by', 'approved_at', 'released_by', 'released_at', 'recurring_template']

    def colored_amount(self, obj):
        color = 'green' if obj.transaction_type == 'receivable' else 'red'
        return format_html('<strong style="color: {};">{}</strong>', color, format_brl(obj.settled_amount))

    colored_amount.short_description = 'Valor'

    def status_badge(self, obj):
        return _badge(obj.status, obj.get_status_display())

    status_badge.short_description = 'Status'


@admin.register(PaymentBatch)
class PaymentBatchAdmin(admin.ModelAdmin):
    list_display = ['name', 'status_badge', 'total', 'approver_email', 'authorizer_email', 'created_at', 'company']
    list_filter = ['status', 'company']
    search_fields = ['name', 'approver_email', 'authorizer_email']
    readonly_fields = [
        'total_amount', 'approval_token', 'approval_token_expires_at',
        'approved_by', 'approved_at', 'authorized_by', 'authorized_at',
        'executed_by', 'executed_at', 'rejected_transaction_ids',
    ]

    def total(self, obj):
        return format_brl(obj.total_amount)

    total.short_description = 'Total'

    def status_badge(self, obj):
        return _badge(obj.status, obj.get_status_display())

    status_badge.short_description = 'Status'


@admin.register(RecurringTransactionTemplate)
class RecurringTransactionTemplateAdmin(admin.ModelAdmin):
    list_display = ['description', 'transaction_type', 'amount', 'frequency', 'interval', 'next_due_date', 'active', 'company']
    list_filter = ['transaction_type', 'frequency', 'active', 'company']
    search_fields = ['description']
    readonly_fields = ['last_generated_at']


@admin.register(CompanyStats)
class CompanyStatsAdmin(admin.ModelAdmin):
    list_display = ['company', 'balance', 'updated_by', 'updated_at']
    readonly_fields = ['company', 'current_balance', 'updated_by', 'updated_at']

    def balance(self, obj):
        return format_brl(obj.current_balance)

    balance.short_description = 'Saldo atual'
