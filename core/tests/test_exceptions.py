from unittest import mock

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError
from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import exceptions

from core.exceptions import ApiError, exception_handler
from core.responses import send_data, send_error, send_list, send_message
from core.testing import ApiTestCase, create_user


class ExceptionHandlerTests(SimpleTestCase):
    def handle(self, exc):
        return exception_handler(exc, {"view": None, "request": None})

    def test_validation_error_is_flattened(self):
        response = self.handle(exceptions.ValidationError({"email": ["Enter a valid email."]}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {"error": "email: Enter a valid email."})

    def test_django_validation_error_becomes_400(self):
        response = self.handle(DjangoValidationError({"end_date_time": ["End date must be after start date."]}))
        self.assertEqual(response.status_code, 400)
        self.assertIn("End date must be after start date.", response.data["error"])

    def test_integrity_error(self):
        response = self.handle(IntegrityError("UNIQUE constraint failed"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {"error": "A record with that value already exists."})

    def test_api_error_carries_extra_fields(self):
        response = self.handle(ApiError("Nope", status_code=409, extra={"userId": 3}))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {"error": "Nope", "userId": 3})

    def test_unexpected_error_is_logged_and_hidden(self):
        with self.assertLogs("core.exceptions", level="ERROR"):
            response = self.handle(RuntimeError("database password is hunter2"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": "Internal server error."})


class ResponseEnvelopeTests(SimpleTestCase):
    def test_envelopes(self):
        self.assertEqual(send_data({"a": 1}).data, {"data": {"a": 1}})
        self.assertEqual(send_message("ok").data, {"message": "ok"})
        self.assertEqual(send_message("ok", []).data, {"message": "ok", "data": []})
        self.assertEqual(send_error("bad").status_code, 400)
        self.assertEqual(
            send_list([], {"page": 1, "limit": 12, "total": 0, "pages": 0}).data["pagination"]["pages"], 0
        )


class ErrorResponseTests(ApiTestCase):
    def test_unknown_route(self):
        response = self.client.get("/api/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "This route does not exist"})

    def test_missing_authentication(self):
        response = self.client.get(reverse("users-list"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid or missing authentication token."})

    def test_role_denied_uses_permission_message(self):
        self.login_as(create_user("plain"))
        response = self.client.get(reverse("users-list"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Access denied. Admin privileges required."})

    def test_stale_cookie_is_anonymous_on_public_routes(self):
        self.client.cookies["authToken"] = "not-a-jwt"
        response = self.client.get(reverse("artworks-list"))
        self.assertEqual(response.status_code, 200)

    def test_health(self):
        response = self.client.get(reverse("health"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "online")
        self.assertIn("artworks", body["endpoints"])

    def test_schema_is_served(self):
        response = self.client.get(reverse("openapi-schema"))
        self.assertEqual(response.status_code, 200)
        self.assertIn("paths", response.json())


class UploadTests(ApiTestCase):
    def test_upload_requires_configuration(self):
        self.login_as(create_user("painter", role="artist", artist_status="verified"))
        image = SimpleUploadedFile("a.png", b"\x89PNG....", content_type="image/png")
        with self.settings(CLOUDINARY={"cloud_name": "", "api_key": "", "api_secret": ""}):
            response = self.client.post(reverse("artworks-upload-image"), {"image": image}, format="multipart")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Image uploads are not configured."})

    def test_upload_returns_url_and_public_id(self):
        self.login_as(create_user("painter", role="artist", artist_status="verified"))
        image = SimpleUploadedFile("a.png", b"\x89PNG....", content_type="image/png")
        result = {"secure_url": "https://res.cloudinary.com/x/a.png", "public_id": "nemesis/artworks/a"}
        with self.settings(CLOUDINARY={"cloud_name": "demo", "api_key": "k", "api_secret": "s"}):
            with mock.patch("core.uploads.cloudinary.uploader.upload", return_value=result) as upload:
                response = self.client.post(reverse("artworks-upload-image"), {"image": image}, format="multipart")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"], {"url": result["secure_url"], "publicId": result["public_id"]})
        self.assertEqual(upload.call_args.kwargs["folder"], "nemesis/artworks")

    def test_upload_rejects_non_images(self):
        self.login_as(create_user("painter", role="artist", artist_status="verified"))
        doc = SimpleUploadedFile("a.txt", b"hello", content_type="text/plain")
        response = self.client.post(reverse("artworks-upload-image"), {"image": doc}, format="multipart")
        self.assertEqual(response.status_code, 400)
