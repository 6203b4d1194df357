from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.companies.models import Company
from apps.permissions.roles import UserRole

from .models import UserCompanyRole, UserStatus

User = get_user_model()


class CompanyMembershipSerializer(serializers.ModelSerializer):
    company_name = serializers.CharField(source="company.name", read_only=True)

    class Meta:
        model = UserCompanyRole
        fields = ("company", "company_name", "role", "is_active", "assigned_at")


class UserSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    global_role = serializers.CharField(read_only=True)
    company_roles = serializers.SerializerMethodField()
    memberships = CompanyMembershipSerializer(source="company_memberships", many=True, read_only=True)

    class Meta:
        model = User
        fields = (
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'display_name',
            'phone',
            'department',
            'role',
            'global_role',
            'status',
            'pending_company',
            'pending_role',
            'company_roles',
            'memberships',
            'is_active',
            'date_joined',
            'last_login',
        )
        read_only_fields = (
            'username',
            'role',
            'status',
            'pending_company',
            'pending_role',
            'is_active',
            'date_joined',
            'last_login',
        )

    def get_company_roles(self, obj):
        return {str(company_id): role for company_id, role in obj.company_roles.items()}


class UserSummarySerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'display_name', 'department')


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ('username', 'email', 'password', 'first_name', 'last_name', 'phone', 'department')
        extra_kwargs = {'email': {'required': True}}

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Já existe um usuário com este e-mail.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        # New accounts have no company yet; they ask to join one afterwards.
        validated_data.setdefault('status', UserStatus.PENDING_COMPANY_SETUP)
        return User.objects.create_user(**validated_data)


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField()
    new_password = serializers.CharField()

    def validate_new_password(self, value):
        validate_password(value, user=self.context["request"].user)
        return value


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=UserRole.choices)
    company = serializers.PrimaryKeyRelatedField(queryset=Company.objects.all(), required=False, allow_null=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=UserStatus.choices)


class CompanyAccessRequestSerializer(serializers.Serializer):
    company = serializers.PrimaryKeyRelatedField(queryset=Company.objects.filter(is_active=True))
    role = serializers.ChoiceField(choices=UserRole.choices, default=UserRole.USER)
