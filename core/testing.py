"""Test helpers shared by the app test suites."""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from .middleware import CSRF_COOKIE

TEST_CSRF_TOKEN = "a" * 64
TEST_PASSWORD = "Secret123!"


class CsrfAPIClient(APIClient):
    """APIClient that always presents a matching CSRF cookie and header."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.seed_csrf()

    def seed_csrf(self):
        self.cookies[CSRF_COOKIE] = TEST_CSRF_TOKEN
        self.credentials(HTTP_X_CSRF_TOKEN=TEST_CSRF_TOKEN)

    def logout(self):
        # force_authenticate(user=None) logs out, which drops cookies and credentials
        super().logout()
        self.seed_csrf()


def create_user(username, role="user", artist_status="none", **extra):
    User = get_user_model()
    extra.setdefault("is_email_verified", True)
    return User.objects.create_user(
        username=username,
        email=extra.pop("email", f"{username}@example.com"),
        password=extra.pop("password", TEST_PASSWORD),
        role=role,
        artist_status=artist_status,
        **extra,
    )


def create_artist(username, **extra):
    return create_user(username, role="artist", artist_status="verified", **extra)


class ApiTestCase(TestCase):
    """TestCase with a CSRF-aware client and fresh throttle counters."""

    client_class = CsrfAPIClient

    def setUp(self):
        cache.clear()

    def login_as(self, user):
        self.client.force_authenticate(user=user)
        return user
