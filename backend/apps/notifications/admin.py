from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("created_at", "user", "company", "title", "notification_type", "status")
    list_filter = ("notification_type", "status", "company")
    search_fields = ("title", "body", "user__username", "user__email")
    raw_id_fields = ("user",)
