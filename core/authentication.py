import logging

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


class CookieJWTAuthentication(JWTAuthentication):
    """JWT auth reading the ``authToken`` cookie first, then ``Authorization: Bearer``.

    A stale cookie is treated as anonymous so public endpoints keep working;
    protected endpoints still answer 401.
    """

    def authenticate(self, request):
        raw_token = request.COOKIES.get(settings.AUTH_COOKIE_NAME)
        if not raw_token:
            return super().authenticate(request)
        try:
            validated_token = self.get_validated_token(raw_token)
        except InvalidToken:
            logger.debug("Ignoring invalid auth cookie on %s", request.path)
            return super().authenticate(request)
        return self.get_user(validated_token), validated_token


def issue_token(user):
    """Return a signed access token for ``user``."""
    token = AccessToken.for_user(user)
    token["role"] = user.role
    return str(token)


def set_auth_cookie(response, token):
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=settings.AUTH_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.IS_PRODUCTION,
        samesite="None" if settings.IS_PRODUCTION else "Lax",
        path="/",
    )
    return response


def clear_auth_cookie(response):
    response.delete_cookie(
        settings.AUTH_COOKIE_NAME,
        path="/",
        samesite="None" if settings.IS_PRODUCTION else "Lax",
    )
    return response
