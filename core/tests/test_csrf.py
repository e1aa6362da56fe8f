from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from core.middleware import CSRF_COOKIE
from core.testing import TEST_CSRF_TOKEN, CsrfAPIClient


@override_settings(CSRF_ALLOWED_ORIGINS=["http://localhost:5173"], CLIENT_URL="")
class DoubleSubmitCsrfTests(TestCase):
    def test_post_without_header_is_rejected(self):
        client = APIClient()
        client.cookies[CSRF_COOKIE] = TEST_CSRF_TOKEN
        response = client.post(reverse("auth-login"), {"email": "a@b.co", "password": "x"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Invalid CSRF token"})

    def test_mismatched_token_is_rejected(self):
        client = APIClient()
        client.cookies[CSRF_COOKIE] = TEST_CSRF_TOKEN
        client.credentials(HTTP_X_CSRF_TOKEN="b" * 64)
        response = client.post(reverse("auth-login"), {"email": "a@b.co", "password": "x"})
        self.assertEqual(response.status_code, 403)

    def test_matching_pair_passes(self):
        response = CsrfAPIClient().post(
            reverse("auth-login"),
            {"email": "nobody@example.com", "password": "x"},
            HTTP_ORIGIN="http://localhost:5173",
        )
        # Reached the view: unknown credentials, not a CSRF failure
        self.assertEqual(response.status_code, 401)

    def test_foreign_origin_is_rejected(self):
        response = CsrfAPIClient().post(
            reverse("auth-login"),
            {"email": "nobody@example.com", "password": "x"},
            HTTP_ORIGIN="https://evil.example",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Origin not allowed"})

    def test_get_without_cookie_passes_and_issues_cookie(self):
        response = APIClient().get(reverse("auth-csrf-token"))
        self.assertEqual(response.status_code, 200)
        self.assertIn(CSRF_COOKIE, response.cookies)
        cookie = response.cookies[CSRF_COOKIE]
        self.assertEqual(response.json()["csrfToken"], cookie.value)
        self.assertEqual(len(cookie.value), 64)
        self.assertFalse(cookie["httponly"])

    def test_existing_cookie_is_not_reissued(self):
        response = CsrfAPIClient().get(reverse("auth-csrf-token"))
        self.assertNotIn(CSRF_COOKIE, response.cookies)
        self.assertEqual(response.json()["csrfToken"], TEST_CSRF_TOKEN)

    def test_exempt_paths_skip_the_check(self):
        response = APIClient().post(reverse("auth-forgot-password"), {"email": ""})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Email is required."})

    def test_webhook_skips_the_check(self):
        response = APIClient().post(
            reverse("payments-webhook"), b"{}", content_type="application/json"
        )
        # Signature check fails, CSRF does not apply
        self.assertEqual(response.status_code, 400)
