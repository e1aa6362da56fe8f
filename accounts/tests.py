from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from core.testing import TEST_PASSWORD, ApiTestCase, create_artist, create_user
from dashboard.models import AdminActivity

User = get_user_model()

SIGNUP = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "userName": "Ada",
    "email": "Ada@Example.com",
    "password": TEST_PASSWORD,
}


class SignupTests(ApiTestCase):
    def test_signup_creates_unverified_user_and_sends_email(self):
        response = self.client.post(reverse("auth-signup"), SIGNUP)
        self.assertEqual(response.status_code, 201)
        user = User.objects.get(email="ada@example.com")
        self.assertEqual(user.username, "ada")
        self.assertFalse(user.is_email_verified)
        self.assertIsNotNone(user.email_verification_token)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(user.email_verification_token, mail.outbox[0].body)
        self.assertNotIn("password", response.json()["data"])

    def test_duplicate_email(self):
        create_user("ada", email="ada@example.com")
        response = self.client.post(reverse("auth-signup"), {**SIGNUP, "userName": "other"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Email already registered.")

    def test_weak_password(self):
        response = self.client.post(reverse("auth-signup"), {**SIGNUP, "password": "password"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("at least 8 characters", response.json()["error"])

    def test_artist_intent(self):
        self.client.post(reverse("auth-signup"), {**SIGNUP, "intent": "apply_artist"})
        user = User.objects.get(username="ada")
        self.assertEqual(user.role, User.ROLE_ARTIST)
        self.assertEqual(user.artist_status, User.ARTIST_INCOMPLETE)

    def test_email_failure_does_not_fail_signup(self):
        with mock.patch("core.emails.send_mail", side_effect=RuntimeError("smtp down")):
            with self.assertLogs("accounts.api", level="ERROR"):
                response = self.client.post(reverse("auth-signup"), SIGNUP)
        self.assertEqual(response.status_code, 201)


class LoginTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.user = create_user("grace", email="grace@example.com")

    def login(self, **overrides):
        data = {"email": "grace@example.com", "password": TEST_PASSWORD, **overrides}
        return self.client.post(reverse("auth-login"), data)

    def test_login_sets_cookie_and_returns_token(self):
        response = self.login()
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["data"]["userName"], "grace")
        self.assertTrue(body["token"])
        self.assertIn("authToken", response.cookies)
        self.assertTrue(response.cookies["authToken"]["httponly"])

    def test_cookie_authenticates_follow_up_requests(self):
        self.login()
        response = self.client.get(reverse("auth-verify"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["id"], self.user.pk)

    def test_bearer_token_authenticates(self):
        token = self.login().json()["token"]
        self.client.cookies.pop("authToken")
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}", HTTP_X_CSRF_TOKEN="a" * 64)
        response = self.client.get(reverse("users-profile"))
        self.assertEqual(response.status_code, 200)

    def test_email_is_case_insensitive(self):
        self.assertEqual(self.login(email="GRACE@example.com").status_code, 200)

    def test_wrong_password(self):
        response = self.login(password="Wrong123!")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid email or password."})

    def test_unverified_email(self):
        self.user.is_email_verified = False
        self.user.save()
        response = self.login()
        self.assertEqual(response.status_code, 403)
        self.assertTrue(response.json()["requiresEmailVerification"])
        self.assertEqual(response.json()["userId"], self.user.pk)

    def test_suspended_user(self):
        self.user.is_active = False
        self.user.save()
        response = self.login()
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Your account has been suspended."})

    def test_logout_clears_cookie(self):
        self.login()
        response = self.client.post(reverse("auth-logout"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.cookies["authToken"].value, "")


class EmailVerificationTests(ApiTestCase):
    def test_verify_email(self):
        user = create_user("linus", is_email_verified=False)
        token = user.issue_email_verification_token()
        user.save()
        response = self.client.post(reverse("auth-verify-email"), {"token": token})
        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertTrue(user.is_email_verified)
        self.assertIsNone(user.email_verification_token)
        self.assertEqual(mail.outbox[0].subject.split()[0], "Welcome")

    def test_expired_token(self):
        user = create_user("linus", is_email_verified=False)
        token = user.issue_email_verification_token()
        user.email_verification_expires = timezone.now() - timedelta(minutes=1)
        user.save()
        response = self.client.post(reverse("auth-verify-email"), {"token": token})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Invalid or expired verification token."})

    def test_resend_for_verified_user(self):
        create_user("linus", email="linus@example.com")
        response = self.client.post(
            reverse("auth-resend-verification-email"), {"email": "linus@example.com"}
        )
        self.assertEqual(response.status_code, 400)


class PasswordResetTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.user = create_user("ken", email="ken@example.com")

    def test_forgot_password_sends_token(self):
        response = self.client.post(reverse("auth-forgot-password"), {"email": "ken@example.com"})
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertIn(self.user.reset_password_token, mail.outbox[0].body)

    def test_forgot_password_unknown_email(self):
        response = self.client.post(reverse("auth-forgot-password"), {"email": "nobody@example.com"})
        self.assertEqual(response.status_code, 404)

    def test_reset_password(self):
        token = self.user.issue_password_reset_token()
        self.user.save()
        response = self.client.post(
            reverse("auth-reset-password"), {"token": token, "password": "N3w-Password"}
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("N3w-Password"))
        self.assertIsNone(self.user.reset_password_token)

    def test_reset_rejects_weak_password(self):
        token = self.user.issue_password_reset_token()
        self.user.save()
        response = self.client.post(reverse("auth-reset-password"), {"token": token, "password": "weak"})
        self.assertEqual(response.status_code, 400)


class ArtistApplicationTests(ApiTestCase):
    def test_apply_artist(self):
        user = self.login_as(create_user("frida"))
        response = self.client.post(
            reverse("auth-apply-artist"),
            {"companyName": "Casa Azul", "address": {"city": "Mexico City"}},
        )
        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertEqual(user.artist_status, User.ARTIST_PENDING)
        self.assertEqual(user.artist_info["companyName"], "Casa Azul")
        self.assertEqual(user.artist_info["type"], "individual")

    def test_apply_twice(self):
        self.login_as(create_user("frida", role="artist", artist_status="pending"))
        response = self.client.post(reverse("auth-apply-artist"), {"companyName": "Casa Azul"})
        self.assertEqual(response.status_code, 400)

    def test_update_artist_info_merges_nested(self):
        artist = self.login_as(create_artist("diego", artist_info={"address": {"city": "Paris", "zipCode": "75001"}}))
        response = self.client.patch(reverse("auth-update-artist-info"), {"address": {"city": "Lyon"}})
        self.assertEqual(response.status_code, 200)
        artist.refresh_from_db()
        self.assertEqual(artist.artist_info["address"], {"city": "Lyon", "zipCode": "75001"})


class ProfileAndArtistsTests(ApiTestCase):
    def test_update_profile(self):
        self.login_as(create_user("alan"))
        response = self.client.patch(reverse("users-profile"), {"firstName": "Alan", "userName": "Turing"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["userName"], "turing")

    def test_username_taken(self):
        create_user("turing")
        self.login_as(create_user("alan"))
        response = self.client.patch(reverse("users-profile"), {"userName": "turing"})
        self.assertEqual(response.status_code, 400)

    def test_public_artist_listing_only_verified(self):
        create_artist("monet")
        create_user("renoir", role="artist", artist_status="pending")
        response = self.client.get(reverse("users-artists"))
        names = [artist["userName"] for artist in response.json()["data"]]
        self.assertEqual(names, ["monet"])

    def test_unverified_artist_profile_is_hidden(self):
        pending = create_user("renoir", role="artist", artist_status="pending")
        response = self.client.get(reverse("users-artist-detail", args=[pending.pk]))
        self.assertEqual(response.status_code, 404)


@override_settings(CLIENT_URL="http://localhost:5173")
class AdminUserManagementTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin = create_user("admin", role="admin")
        self.superadmin = create_user("root", role="superAdmin")
        self.member = create_user("member")

    def test_list_users_paginated(self):
        self.login_as(self.admin)
        response = self.client.get(reverse("users-list"), {"role": "user", "limit": 1})
        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["pagination"], {"page": 1, "limit": 1, "total": 1, "pages": 1})

    def test_admin_cannot_modify_admin(self):
        other = create_user("other-admin", role="admin")
        self.login_as(self.admin)
        response = self.client.patch(reverse("users-detail", args=[other.pk]), {"firstName": "X"})
        self.assertEqual(response.status_code, 403)

    def test_only_superadmin_grants_admin(self):
        self.login_as(self.admin)
        response = self.client.patch(reverse("users-role", args=[self.member.pk]), {"role": "admin"})
        self.assertEqual(response.status_code, 403)

        self.login_as(self.superadmin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(reverse("users-role", args=[self.member.pk]), {"role": "admin"})
        self.assertEqual(response.status_code, 200)
        activity = AdminActivity.objects.get()
        self.assertEqual(activity.action, AdminActivity.ACTION_UPDATE)
        self.assertEqual(activity.target_id, str(self.member.pk))
        self.assertEqual(activity.details["role"], {"from": "user", "to": "admin"})

    def test_superadmin_is_never_deleted(self):
        self.login_as(self.superadmin)
        other_root = create_user("root2", role="superAdmin")
        response = self.client.delete(reverse("users-detail", args=[other_root.pk]))
        self.assertEqual(response.status_code, 403)
        self.assertTrue(User.objects.filter(pk=other_root.pk).exists())

    def test_cannot_delete_self(self):
        self.login_as(self.admin)
        response = self.client.delete(reverse("users-detail", args=[self.admin.pk]))
        self.assertEqual(response.status_code, 403)

    def test_delete_user_is_logged(self):
        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(reverse("users-detail", args=[self.member.pk]))
        self.assertEqual(response.status_code, 200)
        activity = AdminActivity.objects.get()
        self.assertEqual(activity.action, AdminActivity.ACTION_DELETE)
        self.assertEqual(activity.details["userName"], "member")

    def test_admin_with_history_is_not_deleted(self):
        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post(reverse("users-suspend", args=[self.member.pk]), {"reason": "spam"})
        before = list(AdminActivity.objects.values_list("pk", "admin_id", "action"))
        self.assertEqual(before, [(before[0][0], self.admin.pk, AdminActivity.ACTION_SUSPEND)])

        self.login_as(self.superadmin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(reverse("users-detail", args=[self.admin.pk]))
        self.assertEqual(response.status_code, 409)
        self.assertIn("Suspend it instead", response.json()["error"])
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())
        self.assertEqual(list(AdminActivity.objects.values_list("pk", "admin_id", "action")), before)

    def test_verify_artist_sets_role_and_notifies(self):
        applicant = create_user("painter", artist_status="pending")
        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(
                reverse("users-artist-status", args=[applicant.pk]), {"artistStatus": "verified"}
            )
        self.assertEqual(response.status_code, 200)
        applicant.refresh_from_db()
        self.assertEqual(applicant.role, User.ROLE_ARTIST)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(AdminActivity.objects.count(), 1)

    def test_suspend_blocks_login_and_unsuspend_restores(self):
        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post(reverse("users-suspend", args=[self.member.pk]), {"reason": "spam"})
        self.member.refresh_from_db()
        self.assertFalse(self.member.is_active)

        self.client.force_authenticate(user=None)
        response = self.client.post(
            reverse("auth-login"), {"email": self.member.email, "password": TEST_PASSWORD}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Your account has been suspended."})

        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(reverse("users-unsuspend", args=[self.member.pk]))
        self.assertEqual(response.status_code, 200)
        self.member.refresh_from_db()
        self.assertTrue(self.member.is_active)
        actions = list(AdminActivity.objects.order_by("pk").values_list("action", flat=True))
        self.assertEqual(actions, [AdminActivity.ACTION_SUSPEND, AdminActivity.ACTION_UNSUSPEND])
