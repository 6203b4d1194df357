from rest_framework import serializers

from .models import Company


class CompanySerializer(serializers.ModelSerializer):
    """Company serializer with the caller's role inside it."""
    user_role = serializers.SerializerMethodField()

    class Meta:
        model = Company
        fields = [
            'id',
            'name',
            'cnpj',
            'phone',
            'address',
            'logo_url',
            'batch_frequency_days',
            'last_batch_created_at',
            'is_active',
            'user_role',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['last_batch_created_at', 'created_at', 'updated_at']

    def get_user_role(self, obj):
        from apps.permissions.permissions import effective_role

        request = self.context.get('request')
        if request is None:
            return None
        return effective_role(request.user, obj)

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("O nome da empresa deve ter pelo menos 2 caracteres.")
        return value

    def validate_cnpj(self, value):
        digits = ''.join(ch for ch in value if ch.isdigit())
        if value and len(digits) != 14:
            raise serializers.ValidationError("CNPJ deve conter 14 dígitos.")
        return digits

    def validate_batch_frequency_days(self, value):
        if value < 1:
            raise serializers.ValidationError("A frequência de lotes deve ser de pelo menos 1 dia.")
        return value


class CompanyMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for dropdowns and the company switcher."""

    class Meta:
        model = Company
        fields = ['id', 'name', 'cnpj', 'logo_url']
