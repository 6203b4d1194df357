from django.contrib import admin

from .models import Feedback


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ('title', 'feedback_type', 'priority', 'status', 'read', 'user_email', 'created_at')
    list_filter = ('feedback_type', 'priority', 'status', 'read')
    search_fields = ('title', 'description', 'user_email', 'user_name')
    readonly_fields = ('user', 'user_email', 'user_name', 'error_context', 'responded_by', 'responded_at', 'created_at', 'updated_at')
    date_hierarchy = 'created_at'
