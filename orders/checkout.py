"""
Checkout and cancellation.

Everything here runs inside a single database transaction with row locks
on the artworks and events being bought, so two buyers racing for the last
item or seat cannot both succeed. Any ``CheckoutError`` rolls the whole
order back.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import F

from dashboard.models import PlatformSettings
from events.models import Attendance, Event
from gallery.models import Artwork, VideoPurchase

from .models import ITEM_ARTWORK, ITEM_TICKET, CartItem, Order, OrderItem

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

ADDRESS_FIELDS = ("street", "streetNum", "zipCode", "city", "country")


class CheckoutError(Exception):
    pass


def money(value):
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def split_fee(item_total, rate):
    """Return ``(platform_fee, artist_earnings)`` for one order line."""
    fee = money(item_total * rate)
    return fee, money(item_total) - fee


def ticket_limit():
    return getattr(settings, "MAX_TICKETS_PER_EVENT", 3)


def held_tickets(event, user):
    return event.active_attendances().filter(user=user).count()


def clean_shipping_address(address):
    if not isinstance(address, dict):
        raise CheckoutError("Shipping address is required.")
    cleaned = {key: str(address.get(key) or "").strip() for key in ADDRESS_FIELDS}
    missing = [key for key in ("street", "zipCode", "city", "country") if not cleaned[key]]
    if missing:
        raise CheckoutError(f"Shipping address is missing: {', '.join(missing)}.")
    return cleaned


def _reserve_artwork(cart_item, artwork):
    if artwork is None:
        raise CheckoutError("One or more items in cart are no longer available.")
    if not artwork.is_for_sale:
        raise CheckoutError(f'"{artwork.title}" is no longer available for sale.')
    if artwork.total_in_stock < cart_item.quantity:
        raise CheckoutError(
            f'Not enough stock for "{artwork.title}". Available: {artwork.total_in_stock}'
        )
    Artwork.objects.filter(pk=artwork.pk).update(
        total_in_stock=F("total_in_stock") - cart_item.quantity
    )
    return OrderItem(
        item_type=ITEM_ARTWORK,
        artwork=artwork,
        artist_id=artwork.artist_id,
        title=artwork.title,
        image=(artwork.images or [""])[0],
        price=artwork.price,
        quantity=cart_item.quantity,
    )


def _reserve_tickets(cart_item, event, user):
    if event is None:
        raise CheckoutError("One or more events in cart are no longer available.")
    if event.has_ended:
        raise CheckoutError(f'"{event.title}" has already ended.')

    held = held_tickets(event, user)
    limit = ticket_limit()
    if held + cart_item.quantity > limit:
        raise CheckoutError(
            f'You can only hold a maximum of {limit} tickets for "{event.title}". '
            f"You already have {held}."
        )
    seats = event.seats_left()
    if seats is not None and cart_item.quantity > seats:
        raise CheckoutError(f'Checking out tickets for "{event.title}" failed. Event may be full.')

    codes = []
    for _ in range(cart_item.quantity):
        attendance = Attendance.objects.create(event=event, user=user)
        codes.append(attendance.ticket_code)

    return OrderItem(
        item_type=ITEM_TICKET,
        event=event,
        artist_id=event.artist_id,
        title=event.title,
        image=event.image,
        price=event.price,
        quantity=cart_item.quantity,
        ticket_codes=codes,
    )


@transaction.atomic
def place_order(user, shipping_address):
    """Turn ``user``'s cart into a pending order.

    Raises ``CheckoutError`` with a client-facing reason when the cart is
    empty or an item can no longer be fulfilled.
    """
    address = clean_shipping_address(shipping_address)
    cart = list(CartItem.objects.filter(user=user).order_by("pk"))
    if not cart:
        raise CheckoutError("Cart is empty.")

    # Lock every product row up front, in a stable order
    artworks = Artwork.objects.select_for_update().in_bulk(
        sorted(c.artwork_id for c in cart if c.artwork_id)
    )
    events = Event.objects.select_for_update().in_bulk(
        sorted(c.event_id for c in cart if c.event_id)
    )

    rate = PlatformSettings.get_settings().commission_rate
    items = []
    for cart_item in cart:
        if cart_item.item_type == ITEM_ARTWORK:
            item = _reserve_artwork(cart_item, artworks.get(cart_item.artwork_id))
        else:
            item = _reserve_tickets(cart_item, events.get(cart_item.event_id), user)
        item.platform_fee, item.artist_earnings = split_fee(item.total_price, rate)
        items.append(item)

    subtotal = money(sum((item.total_price for item in items), Decimal("0")))
    order = Order.objects.create(
        user=user,
        subtotal=subtotal,
        total_amount=subtotal,
        platform_fee_total=money(sum((item.platform_fee for item in items), Decimal("0"))),
        platform_fee_rate=rate,
        shipping_address=address,
    )
    for item in items:
        item.order = order
    OrderItem.objects.bulk_create(items)

    CartItem.objects.filter(user=user).delete()
    logger.info("Order %s placed by %s (%s items, %s)", order.pk, user.pk, len(items), subtotal)
    return order


@transaction.atomic
def cancel_order(order, reason):
    """Cancel ``order``, putting artworks back in stock and voiding its tickets
    and the video access it granted.
    """
    order = Order.objects.select_for_update().get(pk=order.pk)
    if order.status == Order.STATUS_CANCELLED:
        return order

    for item in order.items.all():
        if item.item_type == ITEM_ARTWORK and item.artwork_id:
            Artwork.objects.filter(pk=item.artwork_id).update(
                total_in_stock=F("total_in_stock") + item.quantity
            )
        elif item.ticket_codes:
            Attendance.objects.filter(ticket_code__in=item.ticket_codes).update(
                status=Attendance.STATUS_CANCELLED
            )

    VideoPurchase.objects.filter(order=order).delete()
    order.mark_refunded(reason)
    logger.info("Order %s cancelled: %s", order.pk, reason)
    return order


@transaction.atomic
def place_offer_order(buyer, artwork, amount):
    """Create a pending one-item order for ``artwork`` at a negotiated ``amount``.

    The shipping address is collected when the buyer pays.
    """
    artwork = Artwork.objects.select_for_update().get(pk=artwork.pk)
    if not artwork.is_available:
        raise CheckoutError(f'"{artwork.title}" is no longer available for sale.')
    Artwork.objects.filter(pk=artwork.pk).update(total_in_stock=F("total_in_stock") - 1)

    rate = PlatformSettings.get_settings().commission_rate
    price = money(amount)
    fee, earnings = split_fee(price, rate)
    order = Order.objects.create(
        user=buyer,
        subtotal=price,
        total_amount=price,
        platform_fee_total=fee,
        platform_fee_rate=rate,
    )
    OrderItem.objects.create(
        order=order,
        item_type=ITEM_ARTWORK,
        artwork=artwork,
        artist_id=artwork.artist_id,
        title=artwork.title,
        image=(artwork.images or [""])[0],
        price=price,
        quantity=1,
        platform_fee=fee,
        artist_earnings=earnings,
    )
    logger.info("Order %s placed by %s from an accepted offer (%s)", order.pk, buyer.pk, price)
    return order
