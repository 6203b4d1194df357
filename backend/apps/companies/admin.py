from django.contrib import admin

from apps.users.models import UserCompanyRole

from .models import Company


class UserCompanyRoleInline(admin.TabularInline):
    model = UserCompanyRole
    fk_name = 'company'
    extra = 0
    fields = ('user', 'role', 'is_active', 'assigned_by', 'assigned_at')
    readonly_fields = ('assigned_at',)
    raw_id_fields = ('user', 'assigned_by')


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('name', 'cnpj', 'batch_frequency_days', 'last_batch_created_at', 'members_count', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'cnpj')
    readonly_fields = ('last_batch_created_at', 'created_at', 'updated_at')
    inlines = [UserCompanyRoleInline]

    fieldsets = (
        ('Identificação', {
            'fields': ('name', 'cnpj', 'logo_url', 'is_active'),
        }),
        ('Contato', {
            'fields': ('phone', 'address'),
        }),
        ('Lotes de pagamento', {
            'fields': ('batch_frequency_days', 'last_batch_created_at'),
        }),
        ('Datas', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def members_count(self, obj):
        return obj.user_roles.filter(is_active=True).count()
    members_count.short_description = 'Membros'
