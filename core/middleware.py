import logging
import secrets

from django.conf import settings
from django.http import JsonResponse
from django.utils.crypto import constant_time_compare


logger = logging.getLogger(__name__)

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "HTTP_X_CSRF_TOKEN"
CSRF_COOKIE_MAX_AGE = 24 * 60 * 60
SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def generate_csrf_token():
    """Return a random 256-bit token, hex encoded."""
    return secrets.token_hex(32)


def get_allowed_origins():
    origins = set(getattr(settings, "CSRF_ALLOWED_ORIGINS", ()))
    client_url = getattr(settings, "CLIENT_URL", "")
    if client_url:
        origins.add(client_url.rstrip("/"))
    return origins


def set_csrf_cookie(request, response):
    """Issue the CSRF cookie unless the browser already sent one.

    The cookie is readable from script so the client can echo it in the
    ``X-CSRF-Token`` header.
    """
    if request.COOKIES.get(CSRF_COOKIE):
        return response

    is_prod = getattr(settings, "IS_PRODUCTION", False)
    token = getattr(request, "csrf_token_issued", None) or generate_csrf_token()
    response.set_cookie(
        CSRF_COOKIE,
        token,
        max_age=CSRF_COOKIE_MAX_AGE,
        path="/",
        secure=is_prod,
        httponly=False,
        samesite="None" if is_prod else "Lax",
    )
    return response


def is_csrf_exempt(request):
    if request.method in SAFE_METHODS:
        return True
    path = request.path
    if "/webhook" in path:
        return True
    return any(
        exempt in path for exempt in getattr(settings, "CSRF_EXEMPT_PATHS", ())
    )


def validate_csrf(request):
    """Return a 403 response when the request fails the double-submit check.

    Returns ``None`` when the request may proceed.
    """
    if is_csrf_exempt(request):
        return None

    origin = request.META.get("HTTP_ORIGIN")
    if origin and origin.rstrip("/") not in get_allowed_origins():
        logger.warning("CSRF rejected %s %s: origin %s not allowed",
                       request.method, request.path, origin)
        return JsonResponse({"error": "Origin not allowed"}, status=403)

    cookie_token = request.COOKIES.get(CSRF_COOKIE)
    header_token = request.META.get(CSRF_HEADER)
    if cookie_token and header_token and constant_time_compare(cookie_token, header_token):
        return None

    logger.warning(
        "CSRF rejected %s %s: cookie=%s header=%s",
        request.method,
        request.path,
        bool(cookie_token),
        bool(header_token),
    )
    return JsonResponse({"error": "Invalid CSRF token"}, status=403)


class DoubleSubmitCsrfMiddleware:
    """Double-submit cookie protection for state-changing requests.

    Non-safe methods must send the ``csrf_token`` cookie value back in the
    ``X-CSRF-Token`` header, and any ``Origin`` header must be on the
    allow-list. Every response carries the cookie if the request lacked it.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.COOKIES.get(CSRF_COOKIE):
            # Views such as /auth/csrf-token can hand this value back in the body
            request.csrf_token_issued = generate_csrf_token()

        response = validate_csrf(request)
        if response is None:
            response = self.get_response(request)
        return set_csrf_cookie(request, response)
