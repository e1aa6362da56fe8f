import json
import logging

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)

FINISHED_INTENT_STATUSES = ("succeeded", "canceled")


class PaymentNotConfigured(Exception):
    pass


def get_stripe():
    """Return the configured ``stripe`` module, or raise when no key is set."""
    if not settings.STRIPE_SECRET_KEY:
        raise PaymentNotConfigured("Payment processing not configured")
    stripe.api_key = settings.STRIPE_SECRET_KEY
    return stripe


def create_payment_intent(order) -> dict:
    """Create a PaymentIntent for ``order``, reusing an unfinished one.

    The intent id is stored on the order as ``payment_id``.
    """
    client = get_stripe()

    if order.payment_id:
        try:
            existing = client.PaymentIntent.retrieve(order.payment_id)
        except stripe.StripeError:
            logger.info("Previous PaymentIntent %s for order %s is invalid", order.payment_id, order.pk)
        else:
            if existing.status not in FINISHED_INTENT_STATUSES:
                return {"clientSecret": existing.client_secret, "paymentIntentId": existing.id}

    intent = client.PaymentIntent.create(
        amount=order.amount_in_cents,
        currency=settings.STRIPE_CURRENCY,
        metadata={"orderId": str(order.pk), "userId": str(order.user_id)},
        automatic_payment_methods={"enabled": True},
    )
    order.payment_id = intent.id
    order.save(update_fields=["payment_id", "updated_at"])
    logger.info("Created PaymentIntent %s for order %s (%s cents)", intent.id, order.pk, order.amount_in_cents)
    return {"clientSecret": intent.client_secret, "paymentIntentId": intent.id}


def create_video_payment_intent(artwork, user) -> dict:
    """Create a PaymentIntent for instant access to ``artwork``'s full video.

    Access is granted by the webhook once the payment succeeds.
    """
    client = get_stripe()
    amount = int((artwork.price * 100).to_integral_value())
    intent = client.PaymentIntent.create(
        amount=amount,
        currency=settings.STRIPE_CURRENCY,
        metadata={"videoArtworkId": str(artwork.pk), "userId": str(user.pk)},
        automatic_payment_methods={"enabled": True},
    )
    logger.info("Created video PaymentIntent %s for artwork %s by user %s", intent.id, artwork.pk, user.pk)
    return {"clientSecret": intent.client_secret, "paymentIntentId": intent.id}


def payment_status(order) -> dict | None:
    if not (order.payment_id and settings.STRIPE_SECRET_KEY):
        return None
    try:
        intent = get_stripe().PaymentIntent.retrieve(order.payment_id)
    except stripe.StripeError:
        logger.exception("Error retrieving PaymentIntent %s", order.payment_id)
        return None
    return {
        "id": intent.id,
        "status": intent.status,
        "amount": intent.amount / 100,
        "currency": intent.currency,
    }


def verify_stripe_event(payload: bytes, sig_header: str) -> dict | None:
    """Verify a Stripe webhook signature. Returns the event dict or None on failure."""
    try:
        stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("Stripe webhook signature verification failed")
        return None
    return json.loads(payload)
