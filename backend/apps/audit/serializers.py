from rest_framework import serializers

from .models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    action_display = serializers.CharField(source="get_action_display", read_only=True)

    class Meta:
        model = AuditLog
        fields = (
            "id",
            "timestamp",
            "user",
            "user_email",
            "company",
            "action",
            "action_display",
            "entity_type",
            "entity_id",
            "description",
            "details",
            "ip_address",
            "user_agent",
        )
        read_only_fields = fields
