import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.emails import send_order_confirmation_email
from gallery.models import Artwork, VideoPurchase
from gallery.videos import grant_video_access

from .checkout import cancel_order
from .models import Order, ProcessedEvent
from .payments import verify_stripe_event

logger = logging.getLogger(__name__)


def _record_event(event):
    """Return False when this provider event id was already handled.

    Called inside the transaction that runs the handler, so a failed handler
    also forgets the id and the provider's retry gets processed.
    """
    event_id = event.get("id")
    if not event_id:
        return True
    try:
        with transaction.atomic():
            _, created = ProcessedEvent.objects.get_or_create(
                event_id=event_id,
                defaults={"provider": "stripe", "event_type": event.get("type", "")},
            )
    except IntegrityError:
        # Concurrent delivery of the same event
        return False
    return created


def _send_confirmation(order):
    try:
        send_order_confirmation_email(order)
    except Exception:
        logger.exception("Failed to send order confirmation email for order %s", order.pk)


def handle_video_payment(intent, metadata):
    artwork = Artwork.objects.filter(pk=metadata["videoArtworkId"]).first()
    user_id = metadata.get("userId")
    if artwork is None or not user_id:
        logger.warning("Video payment %s refers to a missing artwork or user", intent.get("id"))
        return
    price = Decimal(intent.get("amount") or 0) / 100
    grant_video_access(user_id, artwork, payment_id=intent.get("id"), price=price)


def handle_payment_succeeded(intent):
    metadata = intent.get("metadata") or {}
    if metadata.get("videoArtworkId"):
        handle_video_payment(intent, metadata)
        return
    order_id = metadata.get("orderId")
    if not order_id:
        return
    order = Order.objects.select_for_update().filter(pk=order_id).first()
    if order is None or order.status != Order.STATUS_PENDING:
        return
    order.status = Order.STATUS_PAID
    order.payment_id = intent.get("id") or order.payment_id
    order.save(update_fields=["status", "payment_id", "updated_at"])
    logger.info("Order %s marked as paid", order.pk)

    if order.user_id:
        for item in order.items.select_related("artwork"):
            if item.artwork is not None and item.artwork.is_paid_video:
                grant_video_access(
                    order.user_id, item.artwork, payment_id=order.payment_id,
                    purchase_type=VideoPurchase.TYPE_ORDER, order=order, price=item.price,
                )
        transaction.on_commit(lambda: _send_confirmation(order))


def handle_payment_failed(intent):
    order_id = (intent.get("metadata") or {}).get("orderId")
    logger.warning("PaymentIntent %s failed for order %s", intent.get("id"), order_id)


def handle_charge_refunded(charge):
    payment_intent_id = charge.get("payment_intent")
    if not payment_intent_id:
        return
    revoked, _ = VideoPurchase.objects.filter(
        payment_id=payment_intent_id, purchase_type=VideoPurchase.TYPE_INSTANT
    ).delete()
    if revoked:
        logger.info("Video access from PaymentIntent %s revoked after refund", payment_intent_id)
    order = Order.objects.filter(payment_id=payment_intent_id).first()
    if order is not None:
        cancel_order(order, "Refunded via Stripe")


HANDLERS = {
    "payment_intent.succeeded": handle_payment_succeeded,
    "payment_intent.payment_failed": handle_payment_failed,
    "charge.refunded": handle_charge_refunded,
}


@csrf_exempt
@require_POST
def stripe_webhook(request):
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    event = verify_stripe_event(payload, sig_header)
    if not event:
        return HttpResponse(status=400)

    event_type = event.get("type")
    handler = HANDLERS.get(event_type)
    try:
        with transaction.atomic():
            # idempotency: skip if we've seen this provider event id before
            if not _record_event(event):
                return JsonResponse({"received": True, "skipped": True})
            if handler is None:
                logger.info("Unhandled Stripe event type: %s", event_type)
            else:
                handler(event.get("data", {}).get("object", {}))
    except Exception:
        # The event id rolled back with the handler; the provider retries on 5xx
        logger.exception("Stripe webhook %s (%s) failed", event.get("id"), event_type)
        return JsonResponse({"error": "Webhook handler failed."}, status=500)

    return JsonResponse({"received": True})
