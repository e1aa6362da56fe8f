import secrets
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


def default_location():
    return {"isOnline": False}


def generate_ticket_code(event_id):
    return f"EV{event_id:04d}-{secrets.token_hex(4).upper()}"


class Event(models.Model):
    """An exhibition, concert or other happening hosted by an artist.

    - ``max_capacity`` of 0 means unlimited.
    - ``end_date_time`` must come after ``start_date_time``.
    """

    CATEGORY_CHOICES = [
        ("exhibition", "Exhibition"),
        ("concert", "Concert"),
        ("workshop", "Workshop"),
        ("meetup", "Meetup"),
        ("other", "Other"),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000, blank=True)
    artist = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="events",
    )
    start_date_time = models.DateTimeField(db_index=True)
    end_date_time = models.DateTimeField()
    # venue, street, streetNum, zipCode, city, country, isOnline, onlineUrl
    location = models.JSONField(default=default_location, blank=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(Decimal("0"))],
    )
    max_capacity = models.PositiveIntegerField(default=0)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    image = models.URLField(max_length=500, blank=True)
    is_public = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_date_time"]
        indexes = [
            models.Index(fields=["artist", "start_date_time"], name="event_artist_start_idx"),
            models.Index(fields=["category", "start_date_time"], name="event_category_start_idx"),
        ]

    def __str__(self):
        return f"{self.title} on {self.start_date_time:%Y-%m-%d}"

    def clean(self):
        super().clean()
        if self.start_date_time and self.end_date_time and self.end_date_time <= self.start_date_time:
            raise ValidationError({"end_date_time": "End date must be after start date."})

    @property
    def has_ended(self):
        return self.end_date_time < timezone.now()

    @property
    def is_free(self):
        return self.price == 0

    def active_attendances(self):
        return self.attendances.exclude(status=Attendance.STATUS_CANCELLED)

    def seats_left(self):
        """Remaining seats, or None when capacity is unlimited."""
        if not self.max_capacity:
            return None
        return max(self.max_capacity - self.active_attendances().count(), 0)


class Attendance(models.Model):
    """One ticket held by a user for an event."""

    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="attendances")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="attendances",
    )
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CONFIRMED)
    ticket_code = models.CharField(max_length=32, unique=True)
    purchased_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["purchased_at"]

    def __str__(self):
        return f"{self.ticket_code} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.ticket_code:
            self.ticket_code = generate_ticket_code(self.event_id)
        super().save(*args, **kwargs)
