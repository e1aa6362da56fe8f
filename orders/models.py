from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

ITEM_ARTWORK = "artwork"
ITEM_TICKET = "ticket"

ITEM_TYPE_CHOICES = [
	(ITEM_ARTWORK, "Artwork"),
	(ITEM_TICKET, "Ticket"),
]


def empty_address():
	return {}


class CartItem(models.Model):
	"""One line in a user's cart: an artwork or tickets for an event."""
	user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cart_items")
	item_type = models.CharField(max_length=16, choices=ITEM_TYPE_CHOICES)
	artwork = models.ForeignKey("gallery.Artwork", null=True, blank=True, on_delete=models.CASCADE, related_name="cart_items")
	event = models.ForeignKey("events.Event", null=True, blank=True, on_delete=models.CASCADE, related_name="cart_items")
	quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
	added_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ["added_at"]
		constraints = [
			models.UniqueConstraint(
				fields=["user", "artwork"],
				condition=models.Q(artwork__isnull=False),
				name="unique_cart_artwork_per_user",
			),
			models.UniqueConstraint(
				fields=["user", "event"],
				condition=models.Q(event__isnull=False),
				name="unique_cart_event_per_user",
			),
		]

	def __str__(self):
		return f"{self.product} x{self.quantity}"

	@property
	def product(self):
		return self.artwork if self.item_type == ITEM_ARTWORK else self.event

	@property
	def unit_price(self):
		product = self.product
		return product.price if product else Decimal("0.00")

	@property
	def line_total(self):
		return self.unit_price * self.quantity


class Order(models.Model):
	STATUS_PENDING = "pending"
	STATUS_PAID = "paid"
	STATUS_SHIPPED = "shipped"
	STATUS_DELIVERED = "delivered"
	STATUS_CANCELLED = "cancelled"

	STATUS_CHOICES = [
		(STATUS_PENDING, "Pending"),
		(STATUS_PAID, "Paid"),
		(STATUS_SHIPPED, "Shipped"),
		(STATUS_DELIVERED, "Delivered"),
		(STATUS_CANCELLED, "Cancelled"),
	]

	# Statuses that count towards revenue and verified purchases
	REVENUE_STATUSES = (STATUS_PAID, STATUS_SHIPPED, STATUS_DELIVERED)

	user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="orders")
	status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
	subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
	total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
	platform_fee_total = models.DecimalField(max_digits=10, decimal_places=2, default=0)
	# Fraction of each item kept by the platform, e.g. 0.20
	platform_fee_rate = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal("0.20"))
	# street, streetNum, zipCode, city, country
	shipping_address = models.JSONField(default=empty_address)
	# Stripe PaymentIntent id
	payment_id = models.CharField(max_length=255, blank=True, db_index=True)
	refunded_at = models.DateTimeField(blank=True, null=True)
	refund_reason = models.CharField(max_length=255, blank=True)

	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ["-created_at"]
		indexes = [
			models.Index(fields=["user", "-created_at"], name="order_user_created_idx"),
		]

	def __str__(self):
		return self.order_number

	@property
	def order_number(self):
		return f"ORD-{self.pk:06d}" if self.pk else "ORD-NEW"

	@property
	def amount_in_cents(self):
		return int((self.total_amount * 100).to_integral_value())

	def mark_refunded(self, reason=""):
		self.status = self.STATUS_CANCELLED
		self.refunded_at = timezone.now()
		self.refund_reason = reason[:255]
		self.save(update_fields=["status", "refunded_at", "refund_reason", "updated_at"])


class OrderItem(models.Model):
	order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
	item_type = models.CharField(max_length=16, choices=ITEM_TYPE_CHOICES, default=ITEM_ARTWORK)
	artwork = models.ForeignKey("gallery.Artwork", null=True, blank=True, on_delete=models.SET_NULL, related_name="order_items")
	event = models.ForeignKey("events.Event", null=True, blank=True, on_delete=models.SET_NULL, related_name="order_items")
	artist = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="sold_items")

	# Snapshot fields so orders do not break if the product later changes or is deleted
	title = models.CharField(max_length=200)
	image = models.URLField(max_length=500, blank=True)
	price = models.DecimalField(max_digits=10, decimal_places=2)
	quantity = models.PositiveIntegerField(default=1)
	platform_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
	artist_earnings = models.DecimalField(max_digits=10, decimal_places=2, default=0)
	ticket_codes = models.JSONField(default=list, blank=True)

	def __str__(self):
		return f"{self.title} x{self.quantity} ({self.order})"

	@property
	def total_price(self):
		return self.price * self.quantity


class ProcessedEvent(models.Model):
	"""Record processed provider webhook event ids to make webhooks idempotent."""
	provider = models.CharField(max_length=64)
	event_id = models.CharField(max_length=255, unique=True)
	event_type = models.CharField(max_length=64, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)

	def __str__(self):
		return f"{self.provider}:{self.event_id}"
