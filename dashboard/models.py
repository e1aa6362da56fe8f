"""
Dashboard app models.

The admin audit trail and the platform-wide settings singleton. Marketplace
data itself lives in the gallery, events and orders apps.
"""
import copy
from decimal import Decimal

from django.conf import settings
from django.db import models


class AppendOnlyError(Exception):
    pass


class AdminActivity(models.Model):
    """Append-only audit record of one administrative mutation."""

    ACTION_CREATE = "CREATE"
    ACTION_UPDATE = "UPDATE"
    ACTION_DELETE = "DELETE"
    ACTION_SUSPEND = "SUSPEND"
    ACTION_UNSUSPEND = "UNSUSPEND"
    ACTION_SETTINGS_UPDATE = "SETTINGS_UPDATE"

    ACTION_CHOICES = [
        (ACTION_CREATE, "Created"),
        (ACTION_UPDATE, "Updated"),
        (ACTION_DELETE, "Deleted"),
        (ACTION_SUSPEND, "Suspended"),
        (ACTION_UNSUSPEND, "Unsuspended"),
        (ACTION_SETTINGS_UPDATE, "Settings updated"),
    ]

    TARGET_USER = "User"
    TARGET_ARTWORK = "Artwork"
    TARGET_EVENT = "Event"
    TARGET_ORDER = "Order"
    TARGET_PLATFORM_SETTINGS = "PlatformSettings"

    TARGET_TYPE_CHOICES = [
        (TARGET_USER, "User"),
        (TARGET_ARTWORK, "Artwork"),
        (TARGET_EVENT, "Event"),
        (TARGET_ORDER, "Order"),
        (TARGET_PLATFORM_SETTINGS, "Platform settings"),
    ]

    # Accounts with audit history cannot be deleted
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="admin_activities",
    )
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    target_type = models.CharField(max_length=20, choices=TARGET_TYPE_CHOICES)
    target_id = models.CharField(max_length=64)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=512, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Admin activity"
        verbose_name_plural = "Admin activities"
        indexes = [
            models.Index(fields=["admin"], name="adminactivity_admin_idx"),
            models.Index(fields=["action"], name="adminactivity_action_idx"),
            models.Index(fields=["-created_at"], name="adminactivity_created_idx"),
        ]

    def __str__(self):
        return f"{self.admin_id} {self.action} {self.target_type} {self.target_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError("Admin activity records cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyError("Admin activity records cannot be deleted.")


GIB = 1024 * 1024 * 1024

DEFAULT_STORAGE = {
    "defaultQuotaBytes": 5 * GIB,
    "maxImageSizeMB": 10,
    "maxVideoSizeMB": 500,
    "allowedImageFormats": ["jpg", "jpeg", "png", "webp", "gif"],
    "allowedVideoFormats": ["mp4", "webm", "mov", "avi"],
}

DEFAULT_SUBSCRIPTION_TIERS = [
    {
        "name": "Free",
        "storageQuotaBytes": 1 * GIB,
        "monthlyPriceUSD": 0,
        "commissionRate": 25,
        "features": ["Basic profile", "Up to 10 artworks", "Community support"],
    },
    {
        "name": "Pro",
        "storageQuotaBytes": 10 * GIB,
        "monthlyPriceUSD": 9.99,
        "commissionRate": 15,
        "features": ["Verified badge", "Up to 100 artworks", "Video uploads", "Priority support"],
    },
    {
        "name": "Enterprise",
        "storageQuotaBytes": 100 * GIB,
        "monthlyPriceUSD": 49.99,
        "commissionRate": 10,
        "features": ["Custom branding", "Unlimited artworks", "API access", "Dedicated support"],
    },
]

DEFAULT_FEATURES = {
    "videoUploadsEnabled": True,
    "eventsEnabled": True,
    "reviewsEnabled": True,
    "ordersEnabled": True,
    "artistApplicationsEnabled": True,
}

DEFAULT_RATE_LIMITS = {
    "authMaxAttempts": 5,
    "authWindowMinutes": 15,
    "apiMaxRequests": 100,
    "apiWindowMinutes": 1,
}

DEFAULT_EMAIL = {
    "fromName": "Nemesis Art Platform",
    "fromEmail": "noreply@nemesis.art",
    "supportEmail": "support@nemesis.art",
}

DEFAULT_GEOLOCATION = {
    "defaultMapCenter": {"lat": 48.8566, "lng": 2.3522},
    "defaultMapZoom": 12,
    "enableGeocoding": True,
}

DEFAULT_MAINTENANCE = {
    "enabled": False,
    "message": "Platform is under maintenance. Please check back soon.",
    "allowedIPs": [],
}


def default_storage():
    return copy.deepcopy(DEFAULT_STORAGE)


def default_subscription_tiers():
    return copy.deepcopy(DEFAULT_SUBSCRIPTION_TIERS)


def default_features():
    return copy.deepcopy(DEFAULT_FEATURES)


def default_rate_limits():
    return copy.deepcopy(DEFAULT_RATE_LIMITS)


def default_email():
    return copy.deepcopy(DEFAULT_EMAIL)


def default_geolocation():
    return copy.deepcopy(DEFAULT_GEOLOCATION)


def default_maintenance():
    return copy.deepcopy(DEFAULT_MAINTENANCE)


class PlatformSettings(models.Model):
    """Platform-wide configuration. A single row with ``key="global"``."""

    GLOBAL_KEY = "global"

    # JSON object fields merged key by key on update
    OBJECT_FIELDS = (
        "storage", "features", "rate_limits", "email", "geolocation",
        "maintenance", "theme", "hero", "display",
    )

    key = models.CharField(max_length=16, unique=True, default=GLOBAL_KEY, editable=False)
    platform_commission = models.DecimalField(max_digits=5, decimal_places=2, default=20)
    storage = models.JSONField(default=default_storage)
    subscription_tiers = models.JSONField(default=default_subscription_tiers)
    features = models.JSONField(default=default_features)
    rate_limits = models.JSONField(default=default_rate_limits)
    email = models.JSONField(default=default_email)
    geolocation = models.JSONField(default=default_geolocation)
    maintenance = models.JSONField(default=default_maintenance)
    theme = models.JSONField(default=dict, blank=True)
    hero = models.JSONField(default=dict, blank=True)
    display = models.JSONField(default=dict, blank=True)
    last_updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Platform settings"
        verbose_name_plural = "Platform settings"

    def __str__(self):
        return f"Platform settings ({self.key})"

    @classmethod
    def get_settings(cls):
        settings_obj, _ = cls.objects.get_or_create(key=cls.GLOBAL_KEY)
        return settings_obj

    def apply_updates(self, updates, user=None):
        """Apply already-validated field updates; object fields are merged."""
        for field, value in updates.items():
            if field in self.OBJECT_FIELDS and isinstance(value, dict):
                value = {**(getattr(self, field) or {}), **value}
            setattr(self, field, value)
        self.last_updated_by = user
        self.save()
        return self

    @property
    def commission_rate(self):
        return Decimal(str(self.platform_commission)) / 100
