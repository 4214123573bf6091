"""Authentication endpoints for the SPA (register, login, profile)."""

from __future__ import annotations

import logging

from django.contrib.auth.signals import user_logged_in
from drf_spectacular.utils import extend_schema
from rest_framework import generics
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import LoginSerializer
from .serializers import RegisterSerializer
from .serializers import UserSerializer
from .serializers import tokens_for_user

logger = logging.getLogger(__name__)


def _auth_response(user, http_status: int) -> Response:
    data = UserSerializer(user).data
    data.update(tokens_for_user(user))
    return Response(data, status=http_status)


@extend_schema(tags=["Authentication"])
class RegisterView(APIView):
    permission_classes = [AllowAny]
    authentication_classes: list = []
    serializer_class = RegisterSerializer

    def post(self, request, *args, **kwargs):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered user %s", user.pk)
        return _auth_response(user, status.HTTP_201_CREATED)


@extend_schema(tags=["Authentication"])
class LoginView(APIView):
    permission_classes = [AllowAny]
    serializer_class = LoginSerializer

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        user_logged_in.send(sender=user.__class__, request=request, user=user)
        return _auth_response(user, status.HTTP_200_OK)


@extend_schema(tags=["Authentication"])
class ProfileView(generics.RetrieveUpdateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer
    http_method_names = ["get", "patch", "head", "options"]

    def get_object(self):
        return self.request.user
