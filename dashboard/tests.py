from decimal import Decimal
from unittest import mock

from django.db import transaction
from django.test import RequestFactory
from django.urls import reverse

from core.testing import ApiTestCase, create_artist, create_user
from gallery.models import Artwork
from orders.models import Order

from .activity import get_client_ip, log_admin_action
from .models import AdminActivity, AppendOnlyError, PlatformSettings


class ActivityLoggerTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin = create_user("admin", role="admin")

    def test_write_happens_after_commit(self):
        request = RequestFactory().post(
            "/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1", HTTP_USER_AGENT="pytest-agent"
        )
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            log_admin_action(
                self.admin, AdminActivity.ACTION_UPDATE, AdminActivity.TARGET_USER, 42,
                details={"field": "role"}, request=request,
            )
            self.assertFalse(AdminActivity.objects.exists())
        self.assertEqual(len(callbacks), 1)
        activity = AdminActivity.objects.get()
        self.assertEqual(activity.target_id, "42")
        self.assertEqual(activity.ip_address, "203.0.113.7")
        self.assertEqual(activity.user_agent, "pytest-agent")

    def test_failed_write_does_not_reach_caller(self):
        on_error = mock.Mock()

        def update_user():
            log_admin_action(
                self.admin, AdminActivity.ACTION_DELETE, AdminActivity.TARGET_USER, 7,
                on_error=on_error,
            )
            return "deleted"

        with mock.patch.object(AdminActivity.objects, "create", side_effect=RuntimeError("db down")):
            with self.captureOnCommitCallbacks(execute=True):
                result = update_user()

        self.assertEqual(result, "deleted")
        on_error.assert_called_once()
        exc, record = on_error.call_args.args
        self.assertIsInstance(exc, RuntimeError)
        self.assertEqual(record["target_id"], "7")

    def test_default_error_handler_logs(self):
        with mock.patch.object(AdminActivity.objects, "create", side_effect=RuntimeError("db down")):
            with self.assertLogs("dashboard.activity", level="ERROR") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    log_admin_action(self.admin, AdminActivity.ACTION_UPDATE, AdminActivity.TARGET_ORDER, 1)
        self.assertIn("Failed to log admin action UPDATE on Order 1", logs.output[0])

    def test_nothing_written_when_caller_rolls_back(self):
        with self.captureOnCommitCallbacks(execute=True):
            try:
                with transaction.atomic():
                    log_admin_action(self.admin, AdminActivity.ACTION_DELETE, AdminActivity.TARGET_USER, 3)
                    raise ValueError("abort")
            except ValueError:
                pass
        self.assertFalse(AdminActivity.objects.exists())

    def test_records_are_append_only(self):
        activity = AdminActivity.objects.create(
            admin=self.admin, action=AdminActivity.ACTION_CREATE,
            target_type=AdminActivity.TARGET_ARTWORK, target_id="1",
        )
        activity.details = {"tampered": True}
        with self.assertRaises(AppendOnlyError):
            activity.save()
        with self.assertRaises(AppendOnlyError):
            activity.delete()

    def test_client_ip_falls_back_to_remote_addr(self):
        request = RequestFactory().get("/", REMOTE_ADDR="198.51.100.2")
        self.assertEqual(get_client_ip(request), "198.51.100.2")

    def test_malformed_forwarded_address_is_dropped(self):
        request = RequestFactory().post("/", HTTP_X_FORWARDED_FOR="unknown, 10.0.0.1")
        with self.assertLogs("dashboard.activity", level="WARNING"):
            self.assertIsNone(get_client_ip(request))
        with self.captureOnCommitCallbacks(execute=True):
            log_admin_action(
                self.admin, AdminActivity.ACTION_UPDATE, AdminActivity.TARGET_USER, 5, request=request,
            )
        self.assertIsNone(AdminActivity.objects.get().ip_address)


class PlatformSettingsTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.root = create_user("root", role="superAdmin")

    def test_only_superadmin_reads_settings(self):
        self.login_as(create_user("admin", role="admin"))
        self.assertEqual(self.client.get(reverse("platform-settings")).status_code, 403)
        self.login_as(self.root)
        data = self.client.get(reverse("platform-settings")).json()["data"]
        self.assertEqual(data["platformCommission"], 20)
        self.assertEqual(len(data["subscriptionTiers"]), 3)

    def test_patch_merges_objects_and_logs(self):
        self.login_as(self.root)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(
                reverse("platform-settings"),
                {"features": {"eventsEnabled": False}, "platformCommission": 15, "unknown": 1},
            )
        self.assertEqual(response.status_code, 200)
        settings_obj = PlatformSettings.get_settings()
        self.assertFalse(settings_obj.features["eventsEnabled"])
        self.assertTrue(settings_obj.features["reviewsEnabled"])
        self.assertEqual(settings_obj.commission_rate, Decimal("0.15"))
        self.assertEqual(settings_obj.last_updated_by, self.root)

        activity = AdminActivity.objects.get()
        self.assertEqual(activity.action, AdminActivity.ACTION_SETTINGS_UPDATE)
        self.assertEqual(activity.target_id, "global")
        self.assertEqual(activity.details, {"fields": ["features", "platformCommission"]})

    def test_patch_without_known_fields(self):
        self.login_as(self.root)
        response = self.client.patch(reverse("platform-settings"), {"unknown": 1})
        self.assertEqual(response.json(), {"error": "No valid fields to update."})

    def test_commission_out_of_range(self):
        self.login_as(self.root)
        response = self.client.patch(reverse("platform-settings"), {"platformCommission": 150})
        self.assertEqual(response.status_code, 400)

    def test_object_field_must_be_object(self):
        self.login_as(self.root)
        response = self.client.patch(reverse("platform-settings"), {"theme": "dark"})
        self.assertEqual(response.status_code, 400)

    def test_maintenance_toggle_is_public(self):
        self.login_as(self.root)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                reverse("platform-maintenance"), {"enabled": True, "message": "Back at noon"}
            )
        self.assertEqual(response.json()["message"], "Maintenance mode enabled")
        self.assertEqual(AdminActivity.objects.count(), 1)

        self.client.force_authenticate(user=None)
        data = self.client.get(reverse("platform-config")).json()["data"]
        self.assertEqual(data["maintenance"], {"enabled": True, "message": "Back at noon"})
        self.assertNotIn("subscriptionTiers", data)


class PlatformStatsTests(ApiTestCase):
    def test_stats(self):
        artist = create_artist("monet")
        buyer = create_user("buyer")
        create_user("applicant", artist_status="pending")
        create_user("banned", is_active=False)
        Artwork.objects.create(artist=artist, title="Water Lilies", price=10, category="painting")
        Order.objects.create(user=buyer, status=Order.STATUS_PAID, total_amount=100, platform_fee_total=20)
        Order.objects.create(user=buyer, status=Order.STATUS_PENDING, total_amount=50, platform_fee_total=10)

        self.login_as(create_user("admin", role="admin"))
        data = self.client.get(reverse("platform-stats")).json()["data"]
        self.assertEqual(data["users"]["total"], 5)
        self.assertEqual(data["users"]["byRole"]["artist"], 1)
        self.assertEqual(data["users"]["pendingArtists"], 1)
        self.assertEqual(data["users"]["suspended"], 1)
        self.assertEqual(data["artworks"], {"total": 1, "forSale": 1})
        self.assertEqual(data["orders"]["byStatus"], {"paid": 1, "pending": 1})
        self.assertEqual(Decimal(str(data["revenue"]["total"])), Decimal("100"))
        self.assertEqual(Decimal(str(data["revenue"]["platformFees"])), Decimal("20"))

    def test_stats_require_admin(self):
        self.login_as(create_user("someone"))
        self.assertEqual(self.client.get(reverse("platform-stats")).status_code, 403)


class ActivityListTests(ApiTestCase):
    def test_filters(self):
        admin = create_user("admin", role="admin")
        other = create_user("other-admin", role="admin")
        AdminActivity.objects.create(
            admin=admin, action=AdminActivity.ACTION_DELETE, target_type=AdminActivity.TARGET_USER, target_id="1",
        )
        AdminActivity.objects.create(
            admin=other, action=AdminActivity.ACTION_UPDATE, target_type=AdminActivity.TARGET_ORDER, target_id="2",
        )

        self.login_as(admin)
        url = reverse("platform-activity")
        self.assertEqual(self.client.get(url).json()["pagination"]["total"], 2)

        data = self.client.get(url, {"action": "UPDATE"}).json()["data"]
        self.assertEqual([a["targetType"] for a in data], ["Order"])
        self.assertEqual(data[0]["admin"]["userName"], "other-admin")

        data = self.client.get(url, {"admin": admin.pk, "targetType": "User"}).json()["data"]
        self.assertEqual([a["targetId"] for a in data], ["1"])
