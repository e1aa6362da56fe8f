"""Who may watch the full video of an artwork, and granting that access."""
import logging

from django.db import IntegrityError, transaction

from core.permissions import is_admin

from .models import VideoPurchase

logger = logging.getLogger(__name__)

# Hidden from viewers without access
PRIVATE_VIDEO_KEYS = ("fullVideoUrl",)


def has_video_access(artwork, user):
    """Free videos are open to everyone; paid ones to the artist, admins and buyers."""
    if not artwork.is_paid_video:
        return True
    if user is None or not user.is_authenticated:
        return False
    if artwork.artist_id == user.pk or is_admin(user):
        return True
    return VideoPurchase.objects.filter(user=user, artwork=artwork).exists()


def redact_video(video):
    return {key: value for key, value in video.items() if key not in PRIVATE_VIDEO_KEYS}


def grant_video_access(user_id, artwork, payment_id="", purchase_type=VideoPurchase.TYPE_INSTANT,
                       order=None, price=None):
    """Record a purchase of ``artwork``'s video. Granting twice is a no-op."""
    try:
        with transaction.atomic():
            purchase, created = VideoPurchase.objects.get_or_create(
                user_id=user_id,
                artwork=artwork,
                defaults={
                    "price_paid": artwork.price if price is None else price,
                    "payment_id": payment_id or "",
                    "purchase_type": purchase_type,
                    "order": order,
                },
            )
    except IntegrityError:
        # Concurrent grant for the same user and artwork
        return VideoPurchase.objects.get(user_id=user_id, artwork=artwork)
    if created:
        logger.info("Video access to artwork %s granted to user %s (%s)", artwork.pk, user_id, purchase_type)
    return purchase
