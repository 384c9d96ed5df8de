from typing import Optional, TypeVar

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser
from rest_framework import HTTP_HEADER_ENCODING
from rest_framework.request import Request
from rest_framework.response import Response

from rest_framework_simplejwt.models import TokenUser
from rest_framework_simplejwt.tokens import Token
from rest_framework_simplejwt.authentication import JWTAuthentication as origial_auth

AuthUser = TypeVar("AuthUser", AbstractBaseUser, TokenUser)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


class JWTAuthentication(origial_auth):
    """
    Custom JWT redefinition, reads the JWT from the access_token cookie first and
    falls back to the Authorization header for API clients without cookies.
    """

    www_authenticate_realm = "api"
    media_type = "application/json"

    def authenticate(self, request: Request) -> Optional[tuple[AuthUser, Token]]:
        cookie = request.COOKIES.get(ACCESS_COOKIE) or None
        if cookie is None:
            return super().authenticate(request)

        raw_token = cookie.encode(HTTP_HEADER_ENCODING)
        validated_token = self.get_validated_token(raw_token)

        return self.get_user(validated_token), validated_token


def set_jwt_cookies(response: Response, access: Optional[str], refresh: Optional[str]) -> Response:
    """
    Store access/refresh tokens as HTTP-only cookies on the given response.
    """
    jwt_settings = settings.SIMPLE_JWT
    if refresh:
        response.set_cookie(
            REFRESH_COOKIE,
            refresh,
            httponly=True,
            secure=settings.JWT_COOKIE_SECURE,
            samesite=settings.JWT_COOKIE_SAMESITE,
            path="/",
            max_age=int(jwt_settings["REFRESH_TOKEN_LIFETIME"].total_seconds()),
        )
    if access:
        response.set_cookie(
            ACCESS_COOKIE,
            access,
            httponly=True,
            secure=settings.JWT_COOKIE_SECURE,
            samesite=settings.JWT_COOKIE_SAMESITE,
            path="/",
            max_age=int(jwt_settings["ACCESS_TOKEN_LIFETIME"].total_seconds()),
        )
    return response


def clear_jwt_cookies(response):
    response.delete_cookie(REFRESH_COOKIE)
    response.delete_cookie(ACCESS_COOKIE)
    return response
