from rest_framework import serializers

from .models import SYSTEM_FEATURES, Feedback, FeedbackStatus

FEATURE_CODES = [code for code, _ in SYSTEM_FEATURES]


class ErrorContextSerializer(serializers.Serializer):
    message = serializers.CharField(allow_blank=True)
    url = serializers.CharField(allow_blank=True, required=False, default="")
    timestamp = serializers.DateTimeField(required=False, allow_null=True)


class FeedbackSerializer(serializers.ModelSerializer):
    feedback_type_display = serializers.CharField(source="get_feedback_type_display", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    related_features = serializers.ListField(
        child=serializers.ChoiceField(choices=FEATURE_CODES), required=False, default=list
    )
    error_context = ErrorContextSerializer(required=False, allow_null=True)
    responded_by_email = serializers.EmailField(source="responded_by.email", read_only=True, default=None)

    class Meta:
        model = Feedback
        fields = [
            "id",
            "user",
            "user_email",
            "user_name",
            "feedback_type",
            "feedback_type_display",
            "priority",
            "related_features",
            "title",
            "description",
            "screenshot_url",
            "error_context",
            "status",
            "status_display",
            "read",
            "admin_response",
            "responded_by",
            "responded_by_email",
            "responded_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "user",
            "user_email",
            "user_name",
            "status",
            "read",
            "admin_response",
            "responded_by",
            "responded_at",
            "created_at",
            "updated_at",
        ]

    def validate_title(self, value):
        value = value.strip()
        if len(value) < 3:
            raise serializers.ValidationError("O título deve ter pelo menos 3 caracteres.")
        return value

    def validate_error_context(self, value):
        if value and value.get("timestamp"):
            value = {**value, "timestamp": value["timestamp"].isoformat()}
        return value


class FeedbackResponseSerializer(serializers.Serializer):
    response = serializers.CharField()


class FeedbackStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=FeedbackStatus.choices)
