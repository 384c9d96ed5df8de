"""
Account Views

Views:
- RegisterView: public sign-up, logs the new user in
- LoginView: username/email login with lockout after repeated failures
- CookieTokenRefreshView: refresh JWT from the refresh_token cookie
- LogoutView: blacklist refresh token and clear cookies
- MeView: read/update own account
- ForgotPasswordView / ResetPasswordView: token based password reset
- NotificationViewSet: own notifications

JWT tokens are never returned in the body; they are stored in HTTP-only
cookies (see backend.custom_auth).

Author: Agency Development Team
Version: 1.0.0
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import update_last_login
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from backend.custom_auth import REFRESH_COOKIE, clear_jwt_cookies, set_jwt_cookies
from backend.exceptions import LoginLocked
from core.audit.services import client_ip
from .emails import send_password_reset_email
from .models import LoginAttempt, UserNotification
from .serializers import (
    LoginSerializer,
    NotificationSerializer,
    PasswordResetConfirmSerializer,
    PasswordResetRequestSerializer,
    RegisterSerializer,
    RoleTokenObtainPairSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()


def _issue_tokens(user, payload: dict) -> Response:
    refresh = RoleTokenObtainPairSerializer.get_token(user)
    if settings.SIMPLE_JWT.get("UPDATE_LAST_LOGIN"):
        update_last_login(None, user)
    response = Response(payload, status=status.HTTP_200_OK)
    return set_jwt_cookies(response, str(refresh.access_token), str(refresh))


class RegisterView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "auth"

    def post(self, request: Request) -> Response:
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("User %s registered", user.username)

        response = _issue_tokens(user, {"user": UserSerializer(user).data})
        response.status_code = status.HTTP_201_CREATED
        return response


class LoginView(APIView):
    """
    Authenticate with username or email.

    Every attempt is journaled in LoginAttempt under one key per account
    (the lowercased e-mail of the matched user, or the lowercased identifier
    when no account matches), so switching between username and e-mail
    shares a single failure budget. Once MAX_LOGIN_ATTEMPTS failures
    accumulate inside LOGIN_LOCKOUT_MINUTES the key is locked (429) until
    the window has passed. A successful login clears its failure journal.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "auth"

    def get_authenticate_header(self, request):
        # challenge header keeps failed logins at 401
        return 'Bearer realm="api"'

    @staticmethod
    def _resolve(identifier: str):
        if "@" in identifier:
            return User.objects.filter(email__iexact=identifier).first()
        return User.objects.filter(username__iexact=identifier).first()

    @staticmethod
    def _attempt_key(identifier: str, user) -> str:
        if user is not None:
            return (user.email or user.get_username()).lower()
        return identifier.lower()

    def _is_locked(self, key: str) -> bool:
        window_start = timezone.now() - timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
        failures = LoginAttempt.objects.filter(
            identifier=key, success=False, created_at__gte=window_start
        ).count()
        return failures >= settings.MAX_LOGIN_ATTEMPTS

    def post(self, request: Request) -> Response:
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identifier = serializer.validated_data["identifier"]
        ip = client_ip(request)

        account = self._resolve(identifier)
        key = self._attempt_key(identifier, account)

        if self._is_locked(key):
            logger.warning("Login locked for %s (ip=%s)", key, ip)
            raise LoginLocked()

        username = account.get_username() if account is not None else identifier
        user = authenticate(
            request, username=username, password=serializer.validated_data["password"]
        )
        if user is None:
            LoginAttempt.objects.create(identifier=key, ip_address=ip, success=False)
            logger.info("Failed login for %s (ip=%s)", key, ip)
            raise AuthenticationFailed("Invalid credentials.")

        LoginAttempt.objects.filter(identifier=key, success=False).delete()
        LoginAttempt.objects.create(identifier=key, ip_address=ip, success=True)
        return _issue_tokens(user, {"user": UserSerializer(user).data})


class CookieTokenRefreshView(APIView):
    """
    Refresh the JWT pair from the refresh_token cookie and store the new
    tokens as cookies.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request: Request) -> Response:
        refresh_token = request.COOKIES.get(REFRESH_COOKIE) or request.data.get("refresh")
        if not refresh_token:
            return Response(
                {"detail": "Refresh token not provided"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = TokenRefreshSerializer(data={"refresh": refresh_token})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        response = Response({"detail": "Token refreshed."}, status=status.HTTP_200_OK)
        return set_jwt_cookies(response, data.get("access"), data.get("refresh"))


class LogoutView(APIView):
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        refresh_token = request.COOKIES.get(REFRESH_COOKIE)
        if refresh_token:
            try:
                RefreshToken(refresh_token).blacklist()
            except TokenError as exc:
                logger.info("Logout with unusable refresh token: %s", exc)
        response = Response({"detail": "Successfully logged out."}, status=status.HTTP_200_OK)
        return clear_jwt_cookies(response)


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)

    def patch(self, request: Request) -> Response:
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class ForgotPasswordView(APIView):
    """
    Always answers 200 so the endpoint cannot be used to discover which addresses exist.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "auth"

    def post(self, request: Request) -> Response:
        serializer = PasswordResetRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = User.objects.filter(
            email__iexact=serializer.validated_data["email"], is_active=True
        ).first()
        if user is not None:
            send_password_reset_email(user)
        return Response(
            {"detail": "If the account exists, a reset link has been sent."},
            status=status.HTTP_200_OK,
        )


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "auth"

    def post(self, request: Request) -> Response:
        serializer = PasswordResetConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        user.set_password(serializer.validated_data["password"])
        user.save(update_fields=["password"])
        logger.info("Password reset for user %s", user.pk)
        return Response({"detail": "Password updated."}, status=status.HTTP_200_OK)


class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self) -> QuerySet[UserNotification]:
        queryset = UserNotification.objects.filter(user=self.request.user)
        unread = self.request.query_params.get("unread")
        if unread is not None and unread.lower() in ("1", "true"):
            queryset = queryset.filter(is_read=False)
        return queryset

    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        notification = self.get_object()
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at"])
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        updated = self.get_queryset().filter(is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        return Response({"updated": updated})
