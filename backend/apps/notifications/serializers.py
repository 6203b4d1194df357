from __future__ import annotations

from rest_framework import serializers

from .emails import EMAIL_DEFINITIONS
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    read = serializers.BooleanField(source="is_read", read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "company",
            "title",
            "body",
            "notification_type",
            "status",
            "read",
            "link",
            "entity_type",
            "entity_id",
            "created_at",
            "read_at",
        ]
        read_only_fields = fields


class EmailRequestSerializer(serializers.Serializer):
    type = serializers.CharField()
    to = serializers.ListField(child=serializers.EmailField(), allow_empty=False)
    data = serializers.DictField(required=False, default=dict)

    def to_internal_value(self, data):
        # A single address is accepted as well as a list.
        if hasattr(data, "get") and isinstance(data.get("to"), str):
            data = {**data, "to": [data["to"]]}
        return super().to_internal_value(data)

    def validate_type(self, value):
        if value not in EMAIL_DEFINITIONS:
            raise serializers.ValidationError("Invalid email type")
        return value
