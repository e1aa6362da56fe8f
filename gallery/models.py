from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Avg, Count


def default_dimensions():
    return {"unit": "cm"}


class Artwork(models.Model):
    CATEGORY_CHOICES = [
        ("painting", "Painting"),
        ("sculpture", "Sculpture"),
        ("photography", "Photography"),
        ("digital", "Digital"),
        ("music", "Music"),
        ("video", "Video"),
        ("other", "Other"),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000, blank=True)
    artist = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="artworks",
    )
    original_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    is_for_sale = models.BooleanField(default=True, db_index=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, db_index=True)
    materials_used = models.JSONField(default=list, blank=True)
    colors = models.JSONField(default=list, blank=True)
    dimensions = models.JSONField(default=default_dimensions, blank=True)
    # Cloudinary URLs, first one is the cover
    images = models.JSONField(default=list, blank=True)
    # fullVideoUrl, previewVideoUrl, isPaid and descriptive metadata
    video = models.JSONField(default=dict, blank=True)
    total_in_stock = models.PositiveIntegerField(default=1)
    average_rating = models.DecimalField(max_digits=2, decimal_places=1, default=0)
    num_of_reviews = models.PositiveIntegerField(default=0)
    favorited_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="favorites",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["artist", "-created_at"], name="artwork_artist_created_idx"),
            models.Index(fields=["category", "price"], name="artwork_category_price_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def is_available(self):
        return self.is_for_sale and self.total_in_stock > 0

    @property
    def has_video(self):
        return bool((self.video or {}).get("fullVideoUrl"))

    @property
    def is_paid_video(self):
        return self.has_video and bool(self.video.get("isPaid"))

    def refresh_rating(self):
        """Recompute average rating (1 decimal) and review count from reviews."""
        stats = self.reviews.aggregate(avg=Avg("rating"), count=Count("id"))
        average = stats["avg"] or 0
        self.average_rating = Decimal(str(round(average, 1)))
        self.num_of_reviews = stats["count"]
        Artwork.objects.filter(pk=self.pk).update(
            average_rating=self.average_rating,
            num_of_reviews=self.num_of_reviews,
        )


class Review(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reviews",
    )
    artwork = models.ForeignKey(
        Artwork,
        on_delete=models.CASCADE,
        related_name="reviews",
    )
    title = models.CharField(max_length=100, blank=True)
    comment = models.TextField(max_length=1000)
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    # Reviewer bought the artwork
    is_verified = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "artwork"],
                name="unique_review_per_user_artwork",
            )
        ]
        indexes = [
            models.Index(fields=["-rating"], name="review_rating_idx"),
        ]

    def __str__(self):
        return f"{self.rating}/5 by {self.user_id} on {self.artwork_id}"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        self.artwork.refresh_rating()

    def delete(self, *args, **kwargs):
        artwork = self.artwork
        result = super().delete(*args, **kwargs)
        artwork.refresh_rating()
        return result


class VideoPurchase(models.Model):
    """Lifetime access to the full video of one artwork."""

    TYPE_INSTANT = "instant"
    TYPE_ORDER = "order"

    TYPE_CHOICES = [
        (TYPE_INSTANT, "Instant"),
        (TYPE_ORDER, "Order"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="video_purchases",
    )
    artwork = models.ForeignKey(
        Artwork,
        on_delete=models.CASCADE,
        related_name="video_purchases",
    )
    price_paid = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    # Stripe PaymentIntent id
    payment_id = models.CharField(max_length=255, blank=True)
    purchase_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_INSTANT)
    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="video_purchases",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "artwork"],
                name="unique_video_purchase_per_user",
            )
        ]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="videopurchase_user_idx"),
            models.Index(fields=["artwork", "-created_at"], name="videopurchase_artwork_idx"),
        ]

    def __str__(self):
        return f"Video {self.artwork_id} for {self.user_id}"
