from __future__ import annotations

from typing import Any

from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.utils.text import slugify
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.tokens import RefreshToken

from taskhub.users.models import User


def tokens_for_user(user: User) -> dict[str, str]:
    refresh = RefreshToken.for_user(user)
    return {"refresh": str(refresh), "access": str(refresh.access_token)}


class UserSerializer(serializers.ModelSerializer[User]):
    class Meta:
        model = User
        fields = ["id", "username", "name", "email"]
        read_only_fields = ["id", "username", "email"]


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    username = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_email(self, value: str) -> str:
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            msg = _("User already exists")
            raise serializers.ValidationError(msg)
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        username = (attrs.get("username") or "").strip()
        if not username:
            username = self._username_from_email(attrs["email"])
        elif User.objects.filter(username__iexact=username).exists():
            raise serializers.ValidationError({"username": _("Username is taken")})
        attrs["username"] = username
        validate_password(attrs["password"])
        return attrs

    @staticmethod
    def _username_from_email(email: str) -> str:
        base = slugify(email.split("@", 1)[0]) or "user"
        candidate = base
        suffix = 1
        while User.objects.filter(username__iexact=candidate).exists():
            suffix += 1
            candidate = f"{base}{suffix}"
        return candidate

    def create(self, validated_data: dict[str, Any]) -> User:
        return User.objects.create_user(
            username=validated_data["username"],
            email=validated_data["email"],
            password=validated_data["password"],
            name=validated_data["name"].strip(),
        )


class LoginSerializer(serializers.Serializer):
    """Email (or username) + password login."""

    email = serializers.CharField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        user = authenticate(
            self.context.get("request"),
            username=attrs["email"].strip(),
            password=attrs["password"],
        )
        if user is None:
            msg = _("Invalid email or password")
            raise AuthenticationFailed(msg)
        attrs["user"] = user
        return attrs
