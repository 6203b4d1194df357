from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer


class EmailOrUsernameTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Extends SimpleJWT to allow logging in with either username or email.
    Accepts any of: username, email, or login (alias).
    """
    username_field = get_user_model().USERNAME_FIELD
    email_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Any one of the identifiers is enough.
        self.fields[self.username_field].required = False
        self.fields["login"] = serializers.CharField(required=False, write_only=True)
        self.fields[self.email_field] = serializers.CharField(required=False, write_only=True)

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.global_role
        token["status"] = user.status
        token["email"] = user.email
        return token

    def validate(self, attrs):
        User = get_user_model()

        login_value = attrs.get("login") or attrs.get(self.email_field) or attrs.get(self.username_field)

        if not login_value:
            raise serializers.ValidationError("Must provide 'username', 'email', or 'login'.")

        if "@" in str(login_value):
            user = User.objects.filter(**{f"{self.email_field}__iexact": login_value}).first()
            # Unknown e-mails fall through so SimpleJWT reports invalid credentials.
            attrs[self.username_field] = getattr(user, self.username_field) if user else login_value
        else:
            attrs[self.username_field] = login_value

        attrs.pop("login", None)
        attrs.pop(self.email_field, None)

        data = super().validate(attrs)
        data["user"] = {
            "id": self.user.pk,
            "username": self.user.username,
            "email": self.user.email,
            "role": self.user.global_role,
            "status": self.user.status,
            "company_roles": {str(k): v for k, v in self.user.company_roles.items()},
        }
        return data
