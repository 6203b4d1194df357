from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "user_email", "company", "action", "entity_type", "entity_id")
    list_filter = ("action", "entity_type", "company")
    search_fields = ("entity_type", "entity_id", "description", "user_email", "user__username")
    readonly_fields = [f.name for f in AuditLog._meta.fields]
