import json
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import stripe
from django.core import mail
from django.db import OperationalError
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from core.testing import ApiTestCase, create_artist, create_user
from dashboard.models import AdminActivity, PlatformSettings
from events.models import Attendance, Event
from gallery.models import Artwork, VideoPurchase

from .checkout import CheckoutError, place_order, split_fee
from .models import ITEM_ARTWORK, ITEM_TICKET, CartItem, Order, OrderItem, ProcessedEvent

ADDRESS = {"street": "Rue de Rivoli", "streetNum": "99", "zipCode": "75001", "city": "Paris", "country": "FR"}


def make_artwork(artist, title="Nocturne", price="100.00", stock=5, **extra):
    return Artwork.objects.create(
        artist=artist, title=title, price=Decimal(price), total_in_stock=stock,
        category="painting", **extra
    )


def make_event(artist, title="Vernissage", price="25.00", days=5, **extra):
    start = timezone.now() + timedelta(days=days)
    return Event.objects.create(
        artist=artist, title=title, price=Decimal(price), category="exhibition",
        start_date_time=start, end_date_time=start + timedelta(hours=2), **extra
    )


class FeeTests(ApiTestCase):
    def test_split_fee_rounds_half_up(self):
        self.assertEqual(split_fee(Decimal("10.05"), Decimal("0.15")), (Decimal("1.51"), Decimal("8.54")))

    def test_fee_and_earnings_add_up(self):
        fee, earnings = split_fee(Decimal("33.33"), Decimal("0.2"))
        self.assertEqual(fee + earnings, Decimal("33.33"))

    def test_order_number(self):
        order = Order.objects.create()
        self.assertEqual(order.order_number, f"ORD-{order.pk:06d}")


class CartTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("whistler")
        self.user = self.login_as(create_user("buyer"))

    def add(self, **data):
        return self.client.post(reverse("cart-add"), data)

    def test_add_artwork_merges_quantities(self):
        artwork = make_artwork(self.artist)
        self.add(artworkId=artwork.pk)
        response = self.add(artworkId=artwork.pk, quantity=2)
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["totalItems"], 3)
        self.assertEqual(Decimal(str(data["totalPrice"])), Decimal("300.00"))
        self.assertEqual(CartItem.objects.get().quantity, 3)

    def test_add_requires_product(self):
        response = self.add(quantity=1)
        self.assertEqual(response.json(), {"error": "Artwork ID or Event ID is required."})

    def test_unknown_artwork(self):
        response = self.add(artworkId=999)
        self.assertEqual(response.status_code, 404)

    def test_stock_limit(self):
        artwork = make_artwork(self.artist, stock=1)
        response = self.add(artworkId=artwork.pk, quantity=2)
        self.assertEqual(response.json(), {"error": "Only 1 items available."})

    def test_artwork_not_for_sale(self):
        artwork = make_artwork(self.artist, is_for_sale=False)
        response = self.add(artworkId=artwork.pk)
        self.assertEqual(response.json(), {"error": "This artwork is not for sale."})

    def test_free_event_tickets_are_refused(self):
        event = make_event(self.artist, price="0")
        response = self.add(eventId=event.pk)
        self.assertEqual(response.status_code, 400)
        self.assertIn("join directly", response.json()["error"])

    def test_past_event_tickets_are_refused(self):
        event = make_event(self.artist, days=-3)
        response = self.add(eventId=event.pk)
        self.assertEqual(response.json(), {"error": "Cannot buy tickets for past events."})

    def test_ticket_limit_counts_held_tickets(self):
        event = make_event(self.artist)
        Attendance.objects.create(event=event, user=self.user)
        Attendance.objects.create(event=event, user=self.user)
        response = self.add(eventId=event.pk, quantity=2)
        self.assertEqual(
            response.json(), {"error": "You can only purchase a maximum of 3 tickets per event."}
        )
        self.assertEqual(self.add(eventId=event.pk).status_code, 200)

    def test_ticket_capacity(self):
        event = make_event(self.artist, max_capacity=1)
        response = self.add(eventId=event.pk, quantity=2)
        self.assertEqual(response.json(), {"error": "Not enough tickets available."})

    def test_update_remove_and_clear(self):
        artwork = make_artwork(self.artist)
        self.add(artworkId=artwork.pk)
        item = CartItem.objects.get()

        response = self.client.patch(reverse("cart-update"), {"itemId": item.pk, "quantity": 4})
        self.assertEqual(response.json()["data"]["totalItems"], 4)

        response = self.client.patch(reverse("cart-update"), {"itemId": item.pk, "quantity": 0})
        self.assertEqual(response.status_code, 400)

        response = self.client.delete(reverse("cart-remove", args=[item.pk]))
        self.assertEqual(response.json()["data"]["items"], [])
        response = self.client.delete(reverse("cart-remove", args=[item.pk]))
        self.assertEqual(response.status_code, 404)

        self.add(artworkId=artwork.pk)
        response = self.client.delete(reverse("cart-clear"))
        self.assertEqual(response.json(), {"message": "Cart cleared", "data": []})
        self.assertFalse(CartItem.objects.exists())

    def test_cart_of_other_user_is_invisible(self):
        other = create_user("other")
        CartItem.objects.create(user=other, item_type=ITEM_ARTWORK, artwork=make_artwork(self.artist))
        response = self.client.get(reverse("cart"))
        self.assertEqual(response.json()["data"]["totalItems"], 0)


class CheckoutTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("whistler")
        self.other_artist = create_artist("sargent")
        self.buyer = create_user("buyer")

    def test_checkout_creates_order_and_empties_cart(self):
        artwork = make_artwork(self.artist, stock=5)
        event = make_event(self.other_artist, max_capacity=10)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=artwork, quantity=2)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_TICKET, event=event, quantity=2)

        self.login_as(self.buyer)
        response = self.client.post(reverse("orders-create"), {"shippingAddress": ADDRESS})
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["status"], Order.STATUS_PENDING)
        self.assertEqual(Decimal(str(data["subtotal"])), Decimal("250.00"))
        self.assertEqual(Decimal(str(data["platformFeeTotal"])), Decimal("50.00"))

        artwork.refresh_from_db()
        self.assertEqual(artwork.total_in_stock, 3)
        self.assertFalse(CartItem.objects.filter(user=self.buyer).exists())

        ticket_line = OrderItem.objects.get(item_type=ITEM_TICKET)
        self.assertEqual(len(ticket_line.ticket_codes), 2)
        self.assertEqual(ticket_line.artist, self.other_artist)
        self.assertEqual(Attendance.objects.filter(event=event, user=self.buyer).count(), 2)

        artwork_line = OrderItem.objects.get(item_type=ITEM_ARTWORK)
        self.assertEqual(artwork_line.platform_fee, Decimal("40.00"))
        self.assertEqual(artwork_line.artist_earnings, Decimal("160.00"))

    def test_commission_comes_from_platform_settings(self):
        PlatformSettings.objects.create(platform_commission=Decimal("10"))
        CartItem.objects.create(
            user=self.buyer, item_type=ITEM_ARTWORK, artwork=make_artwork(self.artist), quantity=1
        )
        order = place_order(self.buyer, ADDRESS)
        self.assertEqual(order.platform_fee_rate, Decimal("0.1"))
        self.assertEqual(order.items.get().artist_earnings, Decimal("90.00"))

    def test_shortage_rolls_back_everything(self):
        first = make_artwork(self.artist, "First", stock=5)
        second = make_artwork(self.artist, "Second", stock=5)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=first, quantity=1)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=second, quantity=2)
        Artwork.objects.filter(pk=second.pk).update(total_in_stock=1)

        self.login_as(self.buyer)
        response = self.client.post(reverse("orders-create"), {"shippingAddress": ADDRESS})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": 'Not enough stock for "Second". Available: 1'})
        first.refresh_from_db()
        self.assertEqual(first.total_in_stock, 5)
        self.assertFalse(Order.objects.exists())
        self.assertEqual(CartItem.objects.filter(user=self.buyer).count(), 2)

    def test_ticket_limit_enforced_at_checkout(self):
        event = make_event(self.artist)
        for _ in range(2):
            Attendance.objects.create(event=event, user=self.buyer)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_TICKET, event=event, quantity=2)
        with self.assertRaisesMessage(CheckoutError, "maximum of 3 tickets"):
            place_order(self.buyer, ADDRESS)
        self.assertEqual(Attendance.objects.count(), 2)

    def test_empty_cart(self):
        self.login_as(self.buyer)
        response = self.client.post(reverse("orders-create"), {"shippingAddress": ADDRESS})
        self.assertEqual(response.json(), {"error": "Cart is empty."})

    def test_incomplete_address(self):
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=make_artwork(self.artist))
        self.login_as(self.buyer)
        response = self.client.post(reverse("orders-create"), {"shippingAddress": {"street": "Main"}})
        self.assertEqual(response.status_code, 400)
        self.assertIn("zipCode", response.json()["error"])


class OrderAccessTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("whistler")
        self.other_artist = create_artist("sargent")
        self.buyer = create_user("buyer")
        self.artwork = make_artwork(self.artist, stock=3)
        other_artwork = make_artwork(self.other_artist, "Madame X", price="50.00")
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=self.artwork, quantity=2)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=other_artwork)
        self.order = place_order(self.buyer, ADDRESS)

    def status(self, new_status, **extra):
        return self.client.patch(
            reverse("orders-status", args=[self.order.pk]), {"status": new_status, **extra}
        )

    def test_buyer_sees_own_orders(self):
        self.login_as(self.buyer)
        data = self.client.get(reverse("orders-mine")).json()["data"]
        self.assertEqual([o["id"] for o in data], [self.order.pk])
        self.assertEqual(data[0]["orderNumber"], self.order.order_number)

    def test_stranger_cannot_read_order(self):
        self.login_as(create_user("stranger"))
        response = self.client.get(reverse("orders-detail", args=[self.order.pk]))
        self.assertEqual(response.status_code, 403)

    def test_sales_only_show_artist_items(self):
        self.login_as(self.artist)
        sale = self.client.get(reverse("orders-sales")).json()["data"][0]
        self.assertEqual([item["title"] for item in sale["items"]], ["Nocturne"])
        self.assertEqual(Decimal(str(sale["totalAmount"])), Decimal("200.00"))
        self.assertEqual(Decimal(str(sale["artistEarnings"])), Decimal("160.00"))

    def test_all_orders_is_admin_only(self):
        self.login_as(self.buyer)
        self.assertEqual(self.client.get(reverse("orders-all")).status_code, 403)
        self.login_as(create_user("admin", role="admin"))
        response = self.client.get(reverse("orders-all"), {"status": "pending"})
        self.assertEqual(response.json()["pagination"]["total"], 1)
        self.assertEqual(response.json()["pagination"]["limit"], 50)

    def test_artist_marks_order_shipped(self):
        self.login_as(self.artist)
        response = self.status(Order.STATUS_SHIPPED)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Order status updated to shipped")

    def test_artist_cannot_cancel(self):
        self.login_as(self.artist)
        response = self.status(Order.STATUS_CANCELLED)
        self.assertEqual(response.status_code, 403)

    def test_unrelated_artist_is_refused(self):
        self.login_as(create_artist("hopper"))
        self.assertEqual(self.status(Order.STATUS_SHIPPED).status_code, 403)

    def test_admin_cancel_restocks_and_is_logged(self):
        self.login_as(create_user("admin", role="admin"))
        with self.captureOnCommitCallbacks(execute=True):
            response = self.status(Order.STATUS_CANCELLED, refundReason="Damaged in transit")
        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_CANCELLED)
        self.assertEqual(self.order.refund_reason, "Damaged in transit")
        self.assertIsNotNone(self.order.refunded_at)
        self.artwork.refresh_from_db()
        self.assertEqual(self.artwork.total_in_stock, 3)
        activity = AdminActivity.objects.get()
        self.assertEqual(activity.details, {"from": "pending", "to": "cancelled"})

        response = self.status(Order.STATUS_PAID)
        self.assertEqual(response.json(), {"error": "Cannot change status of a cancelled order."})


@override_settings(STRIPE_SECRET_KEY="sk_test_123", STRIPE_WEBHOOK_SECRET="whsec_test")
class PaymentTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.buyer = self.login_as(create_user("buyer"))
        self.order = Order.objects.create(
            user=self.buyer, subtotal=Decimal("120.50"), total_amount=Decimal("120.50"), shipping_address=ADDRESS,
        )

    def create_intent(self, order_id=None):
        return self.client.post(
            reverse("payments-create-intent"), {"orderId": order_id or self.order.pk}
        )

    def test_create_intent(self):
        intent = SimpleNamespace(id="pi_123", client_secret="pi_123_secret", status="requires_payment_method")
        with mock.patch("orders.payments.stripe.PaymentIntent.create", return_value=intent) as create:
            response = self.create_intent()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["data"], {"clientSecret": "pi_123_secret", "paymentIntentId": "pi_123"}
        )
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 12050)
        self.assertEqual(kwargs["metadata"]["orderId"], str(self.order.pk))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_id, "pi_123")

    def test_unfinished_intent_is_reused(self):
        self.order.payment_id = "pi_old"
        self.order.save()
        existing = SimpleNamespace(id="pi_old", client_secret="old_secret", status="requires_payment_method")
        with mock.patch("orders.payments.stripe.PaymentIntent.retrieve", return_value=existing), \
                mock.patch("orders.payments.stripe.PaymentIntent.create") as create:
            response = self.create_intent()
        self.assertEqual(response.json()["data"]["paymentIntentId"], "pi_old")
        create.assert_not_called()

    @override_settings(STRIPE_SECRET_KEY="")
    def test_not_configured(self):
        response = self.create_intent()
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Payment processing not configured"})

    def test_only_pending_orders_can_be_paid(self):
        self.order.status = Order.STATUS_PAID
        self.order.save()
        response = self.create_intent()
        self.assertEqual(response.json(), {"error": "Order is not pending payment"})

    def test_order_without_address_needs_one(self):
        self.order.shipping_address = {}
        self.order.save()
        response = self.create_intent()
        self.assertEqual(response.json(), {"error": "Shipping address is required."})

        intent = SimpleNamespace(id="pi_9", client_secret="pi_9_secret", status="requires_payment_method")
        with mock.patch("orders.payments.stripe.PaymentIntent.create", return_value=intent):
            response = self.client.post(
                reverse("payments-create-intent"), {"orderId": self.order.pk, "shippingAddress": ADDRESS}
            )
        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.shipping_address["city"], "Paris")

    def test_other_users_order(self):
        other = Order.objects.create(user=create_user("other"))
        response = self.create_intent(other.pk)
        self.assertEqual(response.status_code, 403)

    def test_payment_status(self):
        self.order.payment_id = "pi_123"
        self.order.save()
        intent = SimpleNamespace(id="pi_123", status="succeeded", amount=12050, currency="usd")
        with mock.patch("orders.payments.stripe.PaymentIntent.retrieve", return_value=intent):
            response = self.client.get(reverse("payments-status", args=[self.order.pk]))
        data = response.json()["data"]
        self.assertEqual(data["paymentStatus"]["status"], "succeeded")
        self.assertEqual(data["paymentStatus"]["amount"], 120.5)


@override_settings(STRIPE_SECRET_KEY="sk_test_123", STRIPE_WEBHOOK_SECRET="whsec_test")
class WebhookTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("whistler")
        self.buyer = create_user("buyer")
        self.artwork = make_artwork(self.artist, stock=2)
        CartItem.objects.create(user=self.buyer, item_type=ITEM_ARTWORK, artwork=self.artwork)
        self.order = place_order(self.buyer, ADDRESS)
        self.order.payment_id = "pi_123"
        self.order.save()

    def deliver(self, event):
        with mock.patch("orders.payments.stripe.Webhook.construct_event", return_value=event):
            with self.captureOnCommitCallbacks(execute=True):
                return self.client.post(
                    reverse("payments-webhook"),
                    data=json.dumps(event),
                    content_type="application/json",
                    HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
                )

    def succeeded(self, event_id="evt_1"):
        return {
            "id": event_id,
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_123", "metadata": {"orderId": str(self.order.pk)}}},
        }

    def test_payment_succeeded_marks_order_paid(self):
        response = self.deliver(self.succeeded())
        self.assertEqual(response.json(), {"received": True})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PAID)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(f"{self.order.pk:06d}", mail.outbox[0].subject)

    def test_duplicate_event_is_skipped(self):
        self.deliver(self.succeeded())
        response = self.deliver(self.succeeded())
        self.assertEqual(response.json(), {"received": True, "skipped": True})
        self.assertEqual(ProcessedEvent.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_refund_cancels_and_restocks(self):
        self.deliver(self.succeeded())
        response = self.deliver({
            "id": "evt_2",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_1", "payment_intent": "pi_123"}},
        })
        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_CANCELLED)
        self.assertEqual(self.order.refund_reason, "Refunded via Stripe")
        self.artwork.refresh_from_db()
        self.assertEqual(self.artwork.total_in_stock, 2)

    def test_failed_refund_is_processed_on_retry(self):
        self.deliver(self.succeeded())
        refund = {
            "id": "evt_2",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_1", "payment_intent": "pi_123"}},
        }
        with mock.patch("orders.webhooks.cancel_order", side_effect=OperationalError("database is locked")):
            with self.assertLogs("orders.webhooks", level="ERROR"):
                response = self.deliver(refund)
        self.assertEqual(response.status_code, 500)
        self.assertFalse(ProcessedEvent.objects.filter(event_id="evt_2").exists())

        response = self.deliver(refund)
        self.assertEqual(response.json(), {"received": True})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_CANCELLED)

    def test_video_payment_grants_access(self):
        film = make_artwork(self.artist, title="Reel", price="12.00", video={"fullVideoUrl": "v.mp4", "isPaid": True})
        response = self.deliver({
            "id": "evt_v1",
            "type": "payment_intent.succeeded",
            "data": {"object": {
                "id": "pi_v1",
                "amount": 1200,
                "metadata": {"videoArtworkId": str(film.pk), "userId": str(self.buyer.pk)},
            }},
        })
        self.assertEqual(response.json(), {"received": True})
        purchase = VideoPurchase.objects.get(user=self.buyer, artwork=film)
        self.assertEqual(purchase.price_paid, Decimal("12.00"))
        self.assertEqual(purchase.purchase_type, VideoPurchase.TYPE_INSTANT)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING)

        self.deliver({
            "id": "evt_v2",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_v1", "payment_intent": "pi_v1"}},
        })
        self.assertFalse(VideoPurchase.objects.exists())

    def test_paid_order_grants_video_access(self):
        self.artwork.video = {"fullVideoUrl": "v.mp4", "isPaid": True}
        self.artwork.save()
        self.deliver(self.succeeded())
        purchase = VideoPurchase.objects.get(user=self.buyer, artwork=self.artwork)
        self.assertEqual(purchase.purchase_type, VideoPurchase.TYPE_ORDER)
        self.assertEqual(purchase.order, self.order)

        self.deliver({
            "id": "evt_2",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_1", "payment_intent": "pi_123"}},
        })
        self.assertFalse(VideoPurchase.objects.exists())

    def test_unknown_event_type_is_acknowledged(self):
        response = self.deliver({"id": "evt_3", "type": "customer.created", "data": {"object": {}}})
        self.assertEqual(response.json(), {"received": True})

    def test_bad_signature(self):
        error = stripe.SignatureVerificationError("No signatures found", "t=1,v1=abc")
        with mock.patch("orders.payments.stripe.Webhook.construct_event", side_effect=error):
            response = self.client.post(
                reverse("payments-webhook"), data="{}", content_type="application/json",
            )
        self.assertEqual(response.status_code, 400)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING)
