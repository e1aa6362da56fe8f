from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

from django.test import override_settings
from django.urls import reverse

from core.testing import ApiTestCase, create_artist, create_user
from dashboard.models import AdminActivity
from orders.models import ITEM_ARTWORK, Order, OrderItem

from .models import Artwork, Review, VideoPurchase
from .videos import grant_video_access


def make_artwork(artist, title="Untitled", price="100.00", **extra):
    extra.setdefault("category", "painting")
    return Artwork.objects.create(artist=artist, title=title, price=Decimal(price), **extra)


class ArtworkModelTests(ApiTestCase):
    def test_rating_follows_reviews(self):
        artwork = make_artwork(create_artist("klimt"))
        first = Review.objects.create(artwork=artwork, user=create_user("a"), comment="ok", rating=5)
        Review.objects.create(artwork=artwork, user=create_user("b"), comment="meh", rating=2)
        artwork.refresh_from_db()
        self.assertEqual(artwork.average_rating, Decimal("3.5"))
        self.assertEqual(artwork.num_of_reviews, 2)

        first.delete()
        artwork.refresh_from_db()
        self.assertEqual(artwork.average_rating, Decimal("2.0"))
        self.assertEqual(artwork.num_of_reviews, 1)

    def test_is_available(self):
        artwork = make_artwork(create_artist("klimt"), total_in_stock=0)
        self.assertFalse(artwork.is_available)


class ArtworkListTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("klimt")
        self.other = create_artist("schiele")
        make_artwork(self.artist, "The Kiss", "900.00")
        make_artwork(self.artist, "Beethoven Frieze", "300.00", category="other")
        make_artwork(self.other, "Wally", "50.00", is_for_sale=False)

    def titles(self, **params):
        response = self.client.get(reverse("artworks-list"), params)
        self.assertEqual(response.status_code, 200)
        return [artwork["title"] for artwork in response.json()["data"]]

    def test_sort_by_price(self):
        self.assertEqual(self.titles(sort="price"), ["Wally", "Beethoven Frieze", "The Kiss"])
        self.assertEqual(self.titles(sort="-price"), ["The Kiss", "Beethoven Frieze", "Wally"])

    def test_filters(self):
        self.assertEqual(self.titles(category="other"), ["Beethoven Frieze"])
        self.assertEqual(self.titles(artist=self.other.pk), ["Wally"])
        self.assertEqual(self.titles(isForSale="false"), ["Wally"])
        self.assertEqual(self.titles(minPrice="100", maxPrice="500"), ["Beethoven Frieze"])
        self.assertEqual(self.titles(search="kiss"), ["The Kiss"])

    def test_invalid_price_filter_is_ignored(self):
        self.assertEqual(len(self.titles(minPrice="cheap")), 3)

    def test_pagination(self):
        response = self.client.get(reverse("artworks-list"), {"limit": 2, "page": 2, "sort": "price"})
        body = response.json()
        self.assertEqual([a["title"] for a in body["data"]], ["The Kiss"])
        self.assertEqual(body["pagination"], {"page": 2, "limit": 2, "total": 3, "pages": 2})

    def test_artist_artworks(self):
        response = self.client.get(reverse("artworks-by-artist", args=[self.artist.pk]))
        self.assertEqual(len(response.json()["data"]), 2)


class ArtworkWriteTests(ApiTestCase):
    payload = {
        "title": "Sunflowers",
        "price": 250,
        "category": "painting",
        "dimensions": {"width": 73, "height": 92},
        "images": ["https://res.cloudinary.com/demo/sunflowers.jpg"],
    }

    def test_verified_artist_creates_artwork(self):
        artist = self.login_as(create_artist("vincent"))
        response = self.client.post(reverse("artworks-list"), self.payload)
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["artist"]["id"], artist.pk)
        self.assertEqual(data["dimensions"], {"unit": "cm", "width": 73, "height": 92})

    def test_unverified_artist_cannot_create(self):
        self.login_as(create_user("theo", role="artist", artist_status="pending"))
        response = self.client.post(reverse("artworks-list"), self.payload)
        self.assertEqual(response.status_code, 403)

    def test_anonymous_cannot_create(self):
        response = self.client.post(reverse("artworks-list"), self.payload)
        self.assertEqual(response.status_code, 401)

    def test_negative_price_rejected(self):
        self.login_as(create_artist("vincent"))
        response = self.client.post(reverse("artworks-list"), {**self.payload, "price": -1})
        self.assertEqual(response.status_code, 400)

    def test_unknown_dimension_key_rejected(self):
        self.login_as(create_artist("vincent"))
        response = self.client.post(
            reverse("artworks-list"), {**self.payload, "dimensions": {"weight": 3}}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("weight", response.json()["error"])

    def test_owner_edits_without_activity_log(self):
        artist = self.login_as(create_artist("vincent"))
        artwork = make_artwork(artist)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(reverse("artworks-detail", args=[artwork.pk]), {"title": "Irises"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["title"], "Irises")
        self.assertFalse(AdminActivity.objects.exists())

    def test_other_artist_cannot_edit(self):
        artwork = make_artwork(create_artist("vincent"))
        self.login_as(create_artist("paul"))
        response = self.client.patch(reverse("artworks-detail", args=[artwork.pk]), {"title": "Mine"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "You can only edit your own artworks."})

    def test_admin_edit_and_delete_are_logged(self):
        artwork = make_artwork(create_artist("vincent"))
        admin = self.login_as(create_user("admin", role="admin"))
        with self.captureOnCommitCallbacks(execute=True):
            self.client.patch(reverse("artworks-detail", args=[artwork.pk]), {"isForSale": False})
            response = self.client.delete(reverse("artworks-detail", args=[artwork.pk]))
        self.assertEqual(response.json()["message"], "Artwork deleted successfully.")
        self.assertFalse(Artwork.objects.exists())
        actions = list(
            AdminActivity.objects.filter(admin=admin).order_by("pk").values_list("action", "target_type")
        )
        self.assertEqual(
            actions,
            [
                (AdminActivity.ACTION_UPDATE, AdminActivity.TARGET_ARTWORK),
                (AdminActivity.ACTION_DELETE, AdminActivity.TARGET_ARTWORK),
            ],
        )


class ArtistStatsTests(ApiTestCase):
    def test_stats_count_only_purchased_items(self):
        artist = create_artist("vincent")
        artwork = make_artwork(artist)
        make_artwork(artist, "Sketch", is_for_sale=False)
        buyer = create_user("buyer")
        for order_status in (Order.STATUS_PAID, Order.STATUS_PENDING):
            order = Order.objects.create(user=buyer, status=order_status, subtotal=200, total_amount=200)
            OrderItem.objects.create(
                order=order, item_type=ITEM_ARTWORK, artwork=artwork, artist=artist,
                title=artwork.title, price=100, quantity=2, platform_fee=40, artist_earnings=160,
            )

        self.login_as(artist)
        data = self.client.get(reverse("artworks-artist-stats")).json()["data"]
        self.assertEqual(data["totalArtworks"], 2)
        self.assertEqual(data["forSale"], 1)
        self.assertEqual(data["itemsSold"], 2)
        self.assertEqual(Decimal(str(data["totalEarnings"])), Decimal("160"))


class ReviewTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("vincent")
        self.artwork = make_artwork(self.artist)
        self.buyer = create_user("buyer")
        self.url = reverse("artworks-reviews", args=[self.artwork.pk])

    def test_create_review_updates_rating(self):
        self.login_as(self.buyer)
        response = self.client.post(self.url, {"comment": "Stunning", "rating": 4})
        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.json()["data"]["isVerified"])
        self.artwork.refresh_from_db()
        self.assertEqual(self.artwork.average_rating, Decimal("4.0"))

    def test_review_marked_verified_after_purchase(self):
        order = Order.objects.create(user=self.buyer, status=Order.STATUS_DELIVERED, subtotal=100, total_amount=100)
        OrderItem.objects.create(
            order=order, item_type=ITEM_ARTWORK, artwork=self.artwork, artist=self.artist,
            title=self.artwork.title, price=100, quantity=1,
        )
        self.login_as(self.buyer)
        response = self.client.post(self.url, {"comment": "Stunning", "rating": 5})
        self.assertTrue(response.json()["data"]["isVerified"])

    def test_cannot_review_own_artwork(self):
        self.login_as(self.artist)
        response = self.client.post(self.url, {"comment": "Mine", "rating": 5})
        self.assertEqual(response.status_code, 403)

    def test_duplicate_review(self):
        Review.objects.create(artwork=self.artwork, user=self.buyer, comment="first", rating=3)
        self.login_as(self.buyer)
        response = self.client.post(self.url, {"comment": "again", "rating": 5})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "You have already reviewed this artwork."})

    def test_rating_out_of_range(self):
        self.login_as(self.buyer)
        response = self.client.post(self.url, {"comment": "wow", "rating": 6})
        self.assertEqual(response.status_code, 400)

    def test_list_reviews_is_public(self):
        Review.objects.create(artwork=self.artwork, user=self.buyer, comment="first", rating=3)
        response = self.client.get(self.url)
        body = response.json()
        self.assertEqual(len(body["data"]), 1)
        self.assertEqual(body["pagination"]["limit"], 10)

    def test_artwork_owner_may_delete_review(self):
        review = Review.objects.create(artwork=self.artwork, user=self.buyer, comment="rude", rating=1)
        self.login_as(self.artist)
        response = self.client.delete(reverse("reviews-detail", args=[review.pk]))
        self.assertEqual(response.status_code, 200)
        self.artwork.refresh_from_db()
        self.assertEqual(self.artwork.num_of_reviews, 0)

    def test_stranger_cannot_edit_review(self):
        review = Review.objects.create(artwork=self.artwork, user=self.buyer, comment="first", rating=3)
        self.login_as(create_user("stranger"))
        response = self.client.patch(reverse("reviews-detail", args=[review.pk]), {"rating": 1})
        self.assertEqual(response.status_code, 403)


class FavoritesTests(ApiTestCase):
    def test_add_and_remove_favorite(self):
        artwork = make_artwork(create_artist("vincent"))
        user = self.login_as(create_user("fan"))
        response = self.client.post(reverse("users-favorite-detail", args=[artwork.pk]))
        self.assertEqual(response.json()["data"], [artwork.pk])
        self.assertEqual(len(self.client.get(reverse("users-favorites")).json()["data"]), 1)

        self.client.delete(reverse("users-favorite-detail", args=[artwork.pk]))
        self.assertFalse(user.favorites.exists())


VIDEO = {"fullVideoUrl": "https://cdn.example.com/full.mp4", "previewVideoUrl": "https://cdn.example.com/teaser.mp4"}


@override_settings(STRIPE_SECRET_KEY="sk_test_123")
class VideoTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("varda")
        self.viewer = create_user("viewer")
        self.artwork = make_artwork(self.artist, title="Cleo", price="15.00", video={**VIDEO, "isPaid": True})

    def test_full_url_hidden_without_access(self):
        detail = reverse("artworks-detail", args=[self.artwork.pk])
        video = self.client.get(detail).json()["data"]["video"]
        self.assertNotIn("fullVideoUrl", video)
        self.assertEqual(video["previewVideoUrl"], VIDEO["previewVideoUrl"])

        self.login_as(self.artist)
        video = self.client.get(detail).json()["data"]["video"]
        self.assertEqual(video["fullVideoUrl"], VIDEO["fullVideoUrl"])

    def test_free_video_is_open(self):
        free = make_artwork(self.artist, video={**VIDEO, "isPaid": False})
        self.login_as(self.viewer)
        response = self.client.get(reverse("videos-access", args=[free.pk]))
        self.assertEqual(response.json(), {"data": {"hasAccess": True, "isFree": True}})
        response = self.client.get(reverse("videos-stream", args=[free.pk]))
        self.assertEqual(response.json(), {"data": {"streamUrl": VIDEO["fullVideoUrl"]}})

    def test_paid_video_needs_purchase(self):
        self.login_as(self.viewer)
        response = self.client.get(reverse("videos-access", args=[self.artwork.pk]))
        self.assertEqual(response.json()["data"]["hasAccess"], False)

        response = self.client.get(reverse("videos-stream", args=[self.artwork.pk]))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json(), {"error": "You need to purchase this video to watch it.", "price": 15.0}
        )

        grant_video_access(self.viewer.pk, self.artwork, payment_id="pi_v1")
        response = self.client.get(reverse("videos-stream", args=[self.artwork.pk]))
        self.assertEqual(response.json()["data"]["streamUrl"], VIDEO["fullVideoUrl"])
        self.assertTrue(self.client.get(reverse("videos-access", args=[self.artwork.pk])).json()["data"]["hasAccess"])

    def test_artwork_without_video(self):
        plain = make_artwork(self.artist)
        self.login_as(self.viewer)
        response = self.client.get(reverse("videos-stream", args=[plain.pk]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "This artwork has no video."})

    def test_purchase_creates_payment_intent(self):
        self.login_as(self.viewer)
        intent = SimpleNamespace(id="pi_v1", client_secret="pi_v1_secret")
        with mock.patch("orders.payments.stripe.PaymentIntent.create", return_value=intent) as create:
            response = self.client.post(reverse("videos-purchase", args=[self.artwork.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {
            "clientSecret": "pi_v1_secret", "paymentIntentId": "pi_v1",
            "price": 15.0, "artworkId": self.artwork.pk,
        })
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 1500)
        self.assertEqual(kwargs["metadata"], {"videoArtworkId": str(self.artwork.pk), "userId": str(self.viewer.pk)})
        # Access waits for the payment webhook
        self.assertFalse(VideoPurchase.objects.exists())

    def test_purchase_refusals(self):
        self.login_as(self.artist)
        response = self.client.post(reverse("videos-purchase", args=[self.artwork.pk]))
        self.assertEqual(response.json(), {"error": "You cannot purchase your own video."})

        self.login_as(self.viewer)
        free = make_artwork(self.artist, video=VIDEO)
        response = self.client.post(reverse("videos-purchase", args=[free.pk]))
        self.assertEqual(response.json(), {"error": "This video is free, no purchase needed."})

        grant_video_access(self.viewer.pk, self.artwork)
        response = self.client.post(reverse("videos-purchase", args=[self.artwork.pk]))
        self.assertEqual(response.json(), {"error": "You already own this video."})

    def test_grant_is_idempotent(self):
        first = grant_video_access(self.viewer.pk, self.artwork, payment_id="pi_v1")
        second = grant_video_access(self.viewer.pk, self.artwork, payment_id="pi_v2")
        self.assertEqual(first, second)
        self.assertEqual(VideoPurchase.objects.get().payment_id, "pi_v1")

    def test_purchased_list(self):
        grant_video_access(self.viewer.pk, self.artwork, payment_id="pi_v1")
        self.login_as(self.viewer)
        body = self.client.get(reverse("videos-purchased")).json()
        self.assertEqual(body["pagination"]["total"], 1)
        entry = body["data"][0]
        self.assertEqual(entry["artwork"]["id"], self.artwork.pk)
        self.assertEqual(entry["pricePaid"], 15.0)
        self.assertEqual(entry["purchaseType"], VideoPurchase.TYPE_INSTANT)
