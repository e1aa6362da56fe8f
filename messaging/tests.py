from datetime import timedelta
from decimal import Decimal

from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from core.testing import ApiTestCase, create_artist, create_user
from gallery.models import Artwork
from orders.models import ITEM_ARTWORK, Order

from .models import Conversation, Message, MessageReceipt


def make_artwork(artist, title="Blue Hour", price="300.00", **extra):
    return Artwork.objects.create(
        artist=artist, title=title, price=Decimal(price), category="painting", **extra
    )


def start_conversation(user, other, artwork=None):
    return Conversation.between(user, other, artwork)


def post_message(conversation, sender, content="hello"):
    message = Message.objects.create(conversation=conversation, sender=sender, content=content)
    conversation.record_message(message)
    return message


class ConversationModelTests(ApiTestCase):
    def test_between_reuses_active_conversation(self):
        a, b = create_user("ann"), create_user("ben")
        first = start_conversation(a, b)
        self.assertEqual(start_conversation(b, a), first)
        self.assertEqual(first.memberships.count(), 2)

        first.status = Conversation.STATUS_ARCHIVED
        first.save()
        self.assertNotEqual(start_conversation(a, b), first)

    def test_conversations_are_per_artwork(self):
        artist, buyer = create_artist("hopper"), create_user("ann")
        general = start_conversation(buyer, artist)
        about_art = start_conversation(buyer, artist, make_artwork(artist))
        self.assertNotEqual(general, about_art)

    def test_record_message_counts_unread_for_others(self):
        a, b = create_user("ann"), create_user("ben")
        conversation = start_conversation(a, b)
        post_message(conversation, a, "one")
        post_message(conversation, a, "two")
        self.assertEqual(conversation.unread_for(b), 2)
        self.assertEqual(conversation.unread_for(a), 0)
        conversation.refresh_from_db()
        self.assertEqual(conversation.last_message_content, "two")
        self.assertEqual(conversation.last_message_sender, a)


class ConversationApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.ann = self.login_as(create_user("ann"))
        self.ben = create_user("ben")

    def test_requires_login(self):
        self.client.logout()
        response = self.client.get(reverse("conversations-list"))
        self.assertEqual(response.status_code, 401)

    def test_start_with_initial_message(self):
        response = self.client.post(
            reverse("conversations-list"), {"participantId": self.ben.pk, "initialMessage": "  Hi Ben "}
        )
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual({p["id"] for p in data["participants"]}, {self.ann.pk, self.ben.pk})
        self.assertEqual(data["lastMessage"]["content"], "Hi Ben")
        self.assertEqual(data["unreadCount"], 0)

        conversation = Conversation.objects.get(pk=data["id"])
        self.assertEqual(conversation.unread_for(self.ben), 1)

        again = self.client.post(reverse("conversations-list"), {"participantId": self.ben.pk})
        self.assertEqual(again.json()["data"]["id"], data["id"])

    def test_start_errors(self):
        response = self.client.post(reverse("conversations-list"), {"participantId": self.ann.pk})
        self.assertEqual(response.json(), {"error": "Cannot start a conversation with yourself."})

        response = self.client.post(reverse("conversations-list"), {"participantId": 9999})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "User not found."})

        response = self.client.post(
            reverse("conversations-list"), {"participantId": self.ben.pk, "artworkId": 9999}
        )
        self.assertEqual(response.json(), {"error": "Artwork not found."})

        response = self.client.post(reverse("conversations-list"), {})
        self.assertEqual(response.status_code, 400)

    def test_list_filters_by_status(self):
        active = start_conversation(self.ann, self.ben)
        post_message(active, self.ben)
        archived = start_conversation(self.ann, create_user("cyd"))
        archived.status = Conversation.STATUS_ARCHIVED
        archived.save()
        start_conversation(self.ben, create_user("dee"))

        response = self.client.get(reverse("conversations-list"))
        body = response.json()
        self.assertEqual([c["id"] for c in body["data"]], [active.pk])
        self.assertEqual(body["data"][0]["unreadCount"], 1)
        self.assertEqual(body["pagination"]["total"], 1)

        response = self.client.get(reverse("conversations-list"), {"status": "all"})
        self.assertEqual({c["id"] for c in response.json()["data"]}, {active.pk, archived.pk})

    def test_outsiders_get_not_found(self):
        conversation = start_conversation(self.ben, create_user("cyd"))
        for name in ("conversations-detail", "conversations-messages"):
            response = self.client.get(reverse(name, args=[conversation.pk]))
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json(), {"error": "Conversation not found."})
        response = self.client.delete(reverse("conversations-detail", args=[conversation.pk]))
        self.assertEqual(response.status_code, 404)

    def test_archive(self):
        conversation = start_conversation(self.ann, self.ben)
        response = self.client.delete(reverse("conversations-detail", args=[conversation.pk]))
        self.assertEqual(response.json()["message"], "Conversation archived")
        conversation.refresh_from_db()
        self.assertEqual(conversation.status, Conversation.STATUS_ARCHIVED)

        response = self.client.post(
            reverse("conversations-messages", args=[conversation.pk]), {"content": "still there?"}
        )
        self.assertEqual(response.json(), {"error": "This conversation is no longer active."})


class MessageApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.ann = self.login_as(create_user("ann"))
        self.ben = create_user("ben")
        self.conversation = start_conversation(self.ann, self.ben)
        self.url = reverse("conversations-messages", args=[self.conversation.pk])

    def test_send_message(self):
        response = self.client.post(self.url, {"content": "Is it still available?"})
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["content"], "Is it still available?")
        self.assertEqual(data["type"], Message.TYPE_TEXT)
        self.assertEqual(data["sender"]["id"], self.ann.pk)
        self.assertEqual(self.conversation.unread_for(self.ben), 1)

    def test_content_is_required(self):
        response = self.client.post(self.url, {"content": "   "})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(self.url, {"content": "x" * (Message.MAX_LENGTH + 1)})
        self.assertEqual(response.status_code, 400)

    def test_history_pages_back_from_newest(self):
        start = timezone.now() - timedelta(hours=1)
        for minute in range(5):
            Message.objects.create(
                conversation=self.conversation, sender=self.ben,
                content=f"m{minute}", created_at=start + timedelta(minutes=minute),
            )
        Message.objects.create(
            conversation=self.conversation, sender=self.ben, content="hidden", is_deleted=True,
        )

        body = self.client.get(self.url, {"limit": 2}).json()["data"]
        self.assertEqual([m["content"] for m in body["messages"]], ["m3", "m4"])
        self.assertTrue(body["hasMore"])

        before = (start + timedelta(minutes=3)).isoformat()
        body = self.client.get(self.url, {"before": before}).json()["data"]
        self.assertEqual([m["content"] for m in body["messages"]], ["m0", "m1", "m2"])
        self.assertFalse(body["hasMore"])

        after = (start + timedelta(minutes=3)).isoformat()
        body = self.client.get(self.url, {"after": after}).json()["data"]
        self.assertEqual([m["content"] for m in body["messages"]], ["m4"])

    def test_mark_read(self):
        mine = post_message(self.conversation, self.ann, "hi")
        theirs = post_message(self.conversation, self.ben, "hello")
        post_message(self.conversation, self.ben, "you there?")

        response = self.client.get(reverse("conversations-unread"))
        self.assertEqual(response.json(), {"data": {"unreadCount": 2}})

        response = self.client.patch(reverse("conversations-read", args=[self.conversation.pk]))
        self.assertEqual(response.json(), {"message": "Messages marked as read"})
        self.assertEqual(self.conversation.unread_for(self.ann), 0)
        self.assertTrue(MessageReceipt.objects.filter(message=theirs, user=self.ann).exists())
        self.assertFalse(MessageReceipt.objects.filter(message=mine).exists())

        # Marking twice keeps one receipt per message
        self.client.patch(reverse("conversations-read", args=[self.conversation.pk]))
        self.assertEqual(MessageReceipt.objects.filter(user=self.ann).count(), 2)
        self.assertEqual(self.client.get(reverse("conversations-unread")).json()["data"]["unreadCount"], 0)

    def test_unread_count_skips_archived(self):
        post_message(self.conversation, self.ben)
        cyd = create_user("cyd")
        other = start_conversation(self.ann, cyd)
        post_message(other, cyd)
        other.status = Conversation.STATUS_ARCHIVED
        other.save()
        response = self.client.get(reverse("conversations-unread"))
        self.assertEqual(response.json()["data"]["unreadCount"], 1)


@override_settings(CLIENT_URL="https://nemesis.test")
class OfferTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.artist = create_artist("hopper")
        self.buyer = self.login_as(create_user("ann"))
        self.artwork = make_artwork(self.artist, total_in_stock=1)
        self.conversation = start_conversation(self.buyer, self.artist, self.artwork)

    def make_offer(self, amount="250.00", **extra):
        return self.client.post(
            reverse("conversations-offer", args=[self.conversation.pk]), {"amount": amount, **extra}
        )

    def respond(self, offer_id, decision):
        return self.client.patch(
            reverse("conversations-offer-response", args=[self.conversation.pk, offer_id]),
            {"status": decision},
        )

    def test_make_offer(self):
        response = self.make_offer()
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["type"], Message.TYPE_OFFER)
        self.assertEqual(data["content"], 'Price offer: €250.00 for "Blue Hour"')
        self.assertEqual(data["offerStatus"], Message.OFFER_PENDING)
        self.assertEqual(data["offerArtwork"], self.artwork.pk)

        self.conversation.refresh_from_db()
        self.assertEqual(self.conversation.current_offer, Decimal("250.00"))
        self.assertEqual(self.conversation.negotiation_status, Conversation.NEGOTIATION_PENDING)
        self.assertEqual(self.conversation.last_message_content, "Price offer: €250.00")

    def test_offer_validation(self):
        self.assertEqual(self.make_offer("0").status_code, 400)
        self.assertEqual(self.make_offer("-5").status_code, 400)

        plain = start_conversation(self.buyer, self.artist)
        response = self.client.post(reverse("conversations-offer", args=[plain.pk]), {"amount": "10.00"})
        self.assertEqual(response.json(), {"error": "No artwork specified for this offer."})

        foreign = make_artwork(create_artist("wyeth"))
        response = self.make_offer(artworkId=foreign.pk)
        self.assertEqual(
            response.json(), {"error": "This artwork does not belong to any participant in this conversation."}
        )

    def test_unverified_artist_cannot_receive_offers(self):
        self.artist.artist_status = "pending"
        self.artist.save()
        response = self.make_offer()
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json(), {"error": "Offers disabled: the artist is not verified to receive payments."}
        )

    def test_cannot_answer_own_offer(self):
        offer_id = self.make_offer().json()["data"]["id"]
        response = self.respond(offer_id, "accepted")
        self.assertEqual(response.json(), {"error": "Cannot respond to your own offer."})

    def test_accept_creates_order_for_buyer(self):
        offer_id = self.make_offer().json()["data"]["id"]
        self.login_as(self.artist)

        response = self.respond(offer_id, "accepted")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Offer accepted")
        self.assertEqual(body["data"]["offer"]["offerStatus"], Message.OFFER_ACCEPTED)

        order = Order.objects.get(pk=body["data"]["orderId"])
        self.assertEqual(order.user, self.buyer)
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.total_amount, Decimal("250.00"))
        self.assertEqual(order.shipping_address, {})
        item = order.items.get()
        self.assertEqual(item.item_type, ITEM_ARTWORK)
        self.assertEqual(item.artist, self.artist)
        self.assertEqual(item.platform_fee + item.artist_earnings, Decimal("250.00"))
        self.artwork.refresh_from_db()
        self.assertEqual(self.artwork.total_in_stock, 0)

        system = self.conversation.messages.get(type=Message.TYPE_SYSTEM)
        self.assertIn("Offer accepted: €250.00", system.content)
        self.assertIn(f"https://nemesis.test/checkout?orderId={order.pk}", system.content)
        self.conversation.refresh_from_db()
        self.assertEqual(self.conversation.negotiation_status, Conversation.NEGOTIATION_ACCEPTED)
        self.assertEqual(self.conversation.unread_for(self.buyer), 1)

        response = self.respond(offer_id, "rejected")
        self.assertEqual(response.json(), {"error": "This offer has already been answered."})

    def test_artist_offer_accepted_by_buyer(self):
        self.login_as(self.artist)
        offer_id = self.make_offer("280.00").json()["data"]["id"]
        self.login_as(self.buyer)
        response = self.respond(offer_id, "accepted")
        order = Order.objects.get(pk=response.json()["data"]["orderId"])
        self.assertEqual(order.user, self.buyer)

    def test_reject(self):
        offer_id = self.make_offer().json()["data"]["id"]
        self.login_as(self.artist)
        response = self.respond(offer_id, "rejected")
        self.assertEqual(response.json()["data"]["orderId"], None)
        self.assertFalse(Order.objects.exists())
        self.assertEqual(
            self.conversation.messages.get(type=Message.TYPE_SYSTEM).content, "Offer rejected: €250.00"
        )

    def test_sold_out_artwork_keeps_offer_pending(self):
        offer_id = self.make_offer().json()["data"]["id"]
        Artwork.objects.filter(pk=self.artwork.pk).update(total_in_stock=0)
        self.login_as(self.artist)
        response = self.respond(offer_id, "accepted")
        self.assertEqual(response.json(), {"error": '"Blue Hour" is no longer available for sale.'})
        self.assertEqual(Message.objects.get(pk=offer_id).offer_status, Message.OFFER_PENDING)
        self.assertFalse(self.conversation.messages.filter(type=Message.TYPE_SYSTEM).exists())

    def test_response_validation(self):
        offer_id = self.make_offer().json()["data"]["id"]
        self.login_as(self.artist)
        self.assertEqual(self.respond(offer_id, "countered").status_code, 400)
        text = post_message(self.conversation, self.buyer)
        response = self.respond(text.pk, "accepted")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Offer not found."})

