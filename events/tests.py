from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.urls import reverse
from django.utils import timezone

from core.testing import ApiTestCase, create_artist, create_user
from dashboard.models import AdminActivity
from orders.models import ITEM_TICKET, Order, OrderItem

from .models import Attendance, Event


def make_event(artist, title="Opening Night", days=7, **extra):
	start = timezone.now() + timedelta(days=days)
	extra.setdefault("category", "exhibition")
	return Event.objects.create(
		artist=artist,
		title=title,
		start_date_time=start,
		end_date_time=start + timedelta(hours=3),
		**extra,
	)


class EventModelTests(ApiTestCase):
	def test_str_representation(self):
		event = make_event(create_artist("ono"))
		self.assertEqual(str(event), f"Opening Night on {event.start_date_time:%Y-%m-%d}")

	def test_end_must_follow_start(self):
		start = timezone.now() + timedelta(days=1)
		event = Event(
			artist=create_artist("ono"),
			title="Backwards",
			category="concert",
			start_date_time=start,
			end_date_time=start - timedelta(hours=1),
		)
		with self.assertRaises(ValidationError):
			event.full_clean()

	def test_seats_left_ignores_cancelled(self):
		event = make_event(create_artist("ono"), max_capacity=2)
		Attendance.objects.create(event=event, user=create_user("a"))
		Attendance.objects.create(event=event, user=create_user("b"), status=Attendance.STATUS_CANCELLED)
		self.assertEqual(event.seats_left(), 1)
		self.assertIsNone(make_event(event.artist, max_capacity=0).seats_left())

	def test_ticket_code_format(self):
		event = make_event(create_artist("ono"))
		attendance = Attendance.objects.create(event=event, user=create_user("a"))
		self.assertRegex(attendance.ticket_code, rf"^EV{event.pk:04d}-[0-9A-F]{{8}}$")


class EventListTests(ApiTestCase):
	def setUp(self):
		super().setUp()
		self.artist = create_artist("ono")
		make_event(self.artist, "Later", days=10, location={"isOnline": False, "city": "Berlin"})
		make_event(self.artist, "Sooner", days=2, category="concert")
		make_event(self.artist, "Hidden", days=5, is_public=False)
		make_event(self.artist, "Stream", days=3, location={"isOnline": True, "onlineUrl": "https://x.io"})

	def titles(self, **params):
		response = self.client.get(reverse("events-list"), params)
		self.assertEqual(response.status_code, 200)
		return [event["title"] for event in response.json()["data"]]

	def test_public_events_sorted_by_start(self):
		self.assertEqual(self.titles(), ["Sooner", "Stream", "Later"])

	def test_owner_sees_private_events(self):
		self.login_as(self.artist)
		self.assertIn("Hidden", self.titles())

	def test_admin_sees_everything(self):
		self.login_as(create_user("admin", role="admin"))
		self.assertEqual(len(self.titles()), 4)

	def test_filters(self):
		self.assertEqual(self.titles(category="concert"), ["Sooner"])
		self.assertEqual(self.titles(city="berl"), ["Later"])
		self.assertEqual(self.titles(isOnline="true"), ["Stream"])

	def test_upcoming_excludes_started_events(self):
		make_event(self.artist, "Yesterday", days=-1)
		self.assertNotIn("Yesterday", self.titles(upcoming="true"))
		self.assertIn("Yesterday", self.titles())

	def test_private_event_detail_is_hidden(self):
		hidden = Event.objects.get(title="Hidden")
		response = self.client.get(reverse("events-detail", args=[hidden.pk]))
		self.assertEqual(response.status_code, 404)


class EventWriteTests(ApiTestCase):
	def payload(self, **overrides):
		start = timezone.now() + timedelta(days=3)
		data = {
			"title": "Workshop",
			"category": "workshop",
			"startDateTime": start.isoformat(),
			"endDateTime": (start + timedelta(hours=2)).isoformat(),
			"location": {"venue": "Studio 5", "city": "Lisbon"},
			"price": 15,
			"maxCapacity": 20,
		}
		data.update(overrides)
		return data

	def test_verified_artist_creates_event(self):
		self.login_as(create_artist("ono"))
		response = self.client.post(reverse("events-list"), self.payload())
		self.assertEqual(response.status_code, 201)
		data = response.json()["data"]
		self.assertEqual(data["location"]["isOnline"], False)
		self.assertEqual(data["attendeeCount"], 0)

	def test_plain_user_cannot_create(self):
		self.login_as(create_user("fan"))
		response = self.client.post(reverse("events-list"), self.payload())
		self.assertEqual(response.status_code, 403)

	def test_end_before_start_rejected(self):
		self.login_as(create_artist("ono"))
		start = timezone.now() + timedelta(days=3)
		response = self.client.post(
			reverse("events-list"),
			self.payload(endDateTime=(start - timedelta(hours=1)).isoformat()),
		)
		self.assertEqual(response.status_code, 400)
		self.assertIn("End date must be after start date.", response.json()["error"])

	def test_online_event_needs_url(self):
		self.login_as(create_artist("ono"))
		response = self.client.post(reverse("events-list"), self.payload(location={"isOnline": True}))
		self.assertEqual(response.status_code, 400)

	def test_unknown_location_key_rejected(self):
		self.login_as(create_artist("ono"))
		response = self.client.post(reverse("events-list"), self.payload(location={"planet": "Mars"}))
		self.assertEqual(response.status_code, 400)

	def test_other_artist_cannot_update(self):
		event = make_event(create_artist("ono"))
		self.login_as(create_artist("cage"))
		response = self.client.patch(reverse("events-detail", args=[event.pk]), {"title": "Mine"})
		self.assertEqual(response.status_code, 403)

	def test_admin_delete_is_logged(self):
		event = make_event(create_artist("ono"))
		self.login_as(create_user("admin", role="admin"))
		with self.captureOnCommitCallbacks(execute=True):
			response = self.client.delete(reverse("events-detail", args=[event.pk]))
		self.assertEqual(response.status_code, 200)
		activity = AdminActivity.objects.get()
		self.assertEqual(activity.target_type, AdminActivity.TARGET_EVENT)
		self.assertEqual(activity.details["title"], "Opening Night")


class AttendEventTests(ApiTestCase):
	def setUp(self):
		super().setUp()
		self.artist = create_artist("ono")
		self.user = self.login_as(create_user("fan"))

	def attend(self, event):
		return self.client.post(reverse("events-attend", args=[event.pk]))

	def test_join_free_event(self):
		event = make_event(self.artist)
		response = self.attend(event)
		self.assertEqual(response.status_code, 200)
		body = response.json()
		self.assertEqual(body["message"], "Successfully joined event.")
		attendance = Attendance.objects.get(event=event, user=self.user)
		self.assertEqual(body["data"]["ticketCode"], attendance.ticket_code)
		self.assertEqual(body["data"]["event"]["attendeeCount"], 1)

	def test_cannot_join_twice(self):
		event = make_event(self.artist)
		self.attend(event)
		response = self.attend(event)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.json(), {"error": "You have already joined this event."})

	def test_cannot_join_past_event(self):
		event = make_event(self.artist, days=-2)
		response = self.attend(event)
		self.assertEqual(response.json(), {"error": "Cannot join past events."})

	def test_paid_event_goes_through_cart(self):
		event = make_event(self.artist, price=Decimal("20.00"))
		response = self.attend(event)
		self.assertEqual(response.status_code, 400)
		self.assertFalse(Attendance.objects.exists())

	def test_full_event(self):
		event = make_event(self.artist, max_capacity=1)
		Attendance.objects.create(event=event, user=create_user("early"))
		response = self.attend(event)
		self.assertEqual(response.json(), {"error": "Event is full."})

	def test_leave_event(self):
		event = make_event(self.artist)
		self.attend(event)
		response = self.client.delete(reverse("events-attend", args=[event.pk]))
		self.assertEqual(response.status_code, 200)
		self.assertFalse(event.attendances.exists())

		response = self.client.delete(reverse("events-attend", args=[event.pk]))
		self.assertEqual(response.json(), {"error": "You are not registered for this event."})

	def test_purchased_ticket_is_kept(self):
		event = make_event(self.artist, price=Decimal("20.00"))
		ticket = Attendance.objects.create(event=event, user=self.user)
		order = Order.objects.create(user=self.user, status=Order.STATUS_PAID, subtotal=20, total_amount=20)
		OrderItem.objects.create(
			order=order, item_type=ITEM_TICKET, event=event, artist=self.artist, title=event.title,
			price=20, quantity=1, platform_fee=4, artist_earnings=16, ticket_codes=[ticket.ticket_code],
		)
		response = self.client.delete(reverse("events-attend", args=[event.pk]))
		self.assertEqual(response.status_code, 400)
		self.assertEqual(
			response.json(), {"error": "Purchased tickets can only be cancelled through their order."}
		)
		self.assertTrue(Attendance.objects.filter(pk=ticket.pk).exists())

	def test_attend_requires_login(self):
		self.client.force_authenticate(user=None)
		response = self.attend(make_event(self.artist))
		self.assertEqual(response.status_code, 401)
		self.assertEqual(response.json(), {"error": "Invalid or missing authentication token."})


class EventAttendeesTests(ApiTestCase):
	def setUp(self):
		super().setUp()
		self.artist = create_artist("ono")
		self.event = make_event(self.artist)
		Attendance.objects.create(event=self.event, user=create_user("fan"))
		self.url = reverse("events-attendees", args=[self.event.pk])

	def test_owner_lists_attendees(self):
		self.login_as(self.artist)
		data = self.client.get(self.url).json()["data"]
		self.assertEqual([a["user"]["userName"] for a in data], ["fan"])

	def test_stranger_is_refused(self):
		self.login_as(create_user("stranger"))
		response = self.client.get(self.url)
		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.json(), {"error": "Unauthorized access to attendee list."})

	def test_artist_event_listing(self):
		response = self.client.get(reverse("events-by-artist", args=[self.artist.pk]))
		self.assertEqual(len(response.json()["data"]), 1)
