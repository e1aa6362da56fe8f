import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, views
from rest_framework.throttling import ScopedRateThrottle

from core.pagination import paginate, parse_pagination
from core.permissions import IsAdmin, is_admin
from core.responses import send_data, send_error, send_list, send_message
from dashboard.activity import log_admin_action
from dashboard.models import AdminActivity
from events.models import Event
from gallery.models import Artwork

from . import payments
from .checkout import (
    CheckoutError, cancel_order, clean_shipping_address, held_tickets, place_order, ticket_limit,
)
from .models import ITEM_ARTWORK, ITEM_TICKET, CartItem, Order
from .serializers import (
    AddToCartSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    SaleSerializer,
    UpdateCartSerializer,
    cart_summary,
)

logger = logging.getLogger(__name__)

# Statuses an artist may set on orders containing their items
ARTIST_STATUSES = (Order.STATUS_SHIPPED, Order.STATUS_DELIVERED)


def user_cart(user):
    return list(
        CartItem.objects.filter(user=user).select_related(
            "artwork__artist", "event__artist"
        )
    )


def orders_with_items():
    return Order.objects.select_related("user").prefetch_related("items")


class CartMixin:
    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "cart"


def check_artwork_quantity(artwork, quantity):
    if not artwork.is_for_sale:
        return "This artwork is not for sale."
    if quantity > artwork.total_in_stock:
        return f"Only {artwork.total_in_stock} items available."
    return None


def check_ticket_quantity(event, user, quantity):
    if event.has_ended:
        return "Cannot buy tickets for past events."
    if event.is_free:
        return "Free events do not require a ticket purchase. Please join directly."
    seats = event.seats_left()
    if seats is not None and quantity > seats:
        return "Not enough tickets available."
    limit = ticket_limit()
    if held_tickets(event, user) + quantity > limit:
        return f"You can only purchase a maximum of {limit} tickets per event."
    return None


class CartView(CartMixin, views.APIView):
    throttle_classes = []

    def get(self, request):
        return send_data(cart_summary(user_cart(request.user)))


class AddToCartView(CartMixin, views.APIView):
    def post(self, request):
        serializer = AddToCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        quantity = data["quantity"]

        if data.get("artworkId"):
            artwork = Artwork.objects.filter(pk=data["artworkId"]).first()
            if artwork is None:
                return send_error("Artwork not found.", status.HTTP_404_NOT_FOUND)
            item = CartItem.objects.filter(user=request.user, artwork=artwork).first()
            total = quantity + (item.quantity if item else 0)
            error = check_artwork_quantity(artwork, total)
            if error:
                return send_error(error)
            lookup = {"artwork": artwork, "item_type": ITEM_ARTWORK}
        else:
            event = Event.objects.filter(pk=data["eventId"]).first()
            if event is None:
                return send_error("Event not found.", status.HTTP_404_NOT_FOUND)
            item = CartItem.objects.filter(user=request.user, event=event).first()
            total = quantity + (item.quantity if item else 0)
            error = check_ticket_quantity(event, request.user, total)
            if error:
                return send_error(error)
            lookup = {"event": event, "item_type": ITEM_TICKET}

        if item is None:
            CartItem.objects.create(user=request.user, quantity=quantity, **lookup)
        else:
            item.quantity = total
            item.save(update_fields=["quantity"])
        return send_message("Item added to cart", cart_summary(user_cart(request.user)))


class UpdateCartView(CartMixin, views.APIView):
    def patch(self, request):
        serializer = UpdateCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quantity = serializer.validated_data["quantity"]

        item = CartItem.objects.filter(
            user=request.user, pk=serializer.validated_data["itemId"]
        ).select_related("artwork", "event").first()
        if item is None:
            return send_error("Item not found in cart.", status.HTTP_404_NOT_FOUND)

        if item.item_type == ITEM_ARTWORK:
            error = check_artwork_quantity(item.artwork, quantity)
        else:
            error = check_ticket_quantity(item.event, request.user, quantity)
        if error:
            return send_error(error)

        item.quantity = quantity
        item.save(update_fields=["quantity"])
        return send_message("Cart updated", cart_summary(user_cart(request.user)))


class RemoveFromCartView(CartMixin, views.APIView):
    def delete(self, request, item_id):
        removed, _ = CartItem.objects.filter(user=request.user, pk=item_id).delete()
        if not removed:
            return send_error("Item not found in cart.", status.HTTP_404_NOT_FOUND)
        return send_message("Item removed from cart", cart_summary(user_cart(request.user)))


class ClearCartView(CartMixin, views.APIView):
    throttle_classes = []

    def delete(self, request):
        CartItem.objects.filter(user=request.user).delete()
        return send_message("Cart cleared", [])


class CreateOrderView(views.APIView):
    """Check out the caller's cart into a pending order."""

    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders"

    def post(self, request):
        try:
            order = place_order(request.user, request.data.get("shippingAddress"))
        except CheckoutError as exc:
            return send_error(str(exc))
        order = orders_with_items().get(pk=order.pk)
        return send_message(
            "Order placed successfully!", OrderSerializer(order).data, status=status.HTTP_201_CREATED
        )


class MyOrdersView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        orders = orders_with_items().filter(user=request.user)
        return send_data(OrderSerializer(orders, many=True).data)


class SalesView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        orders = orders_with_items().filter(items__artist=request.user).distinct()
        return send_data(SaleSerializer(orders, many=True, context={"artist": request.user}).data)


class AllOrdersView(views.APIView):
    permission_classes = [IsAdmin]

    def get(self, request):
        params = parse_pagination(request.query_params, {"limit": 50})
        qs = orders_with_items()
        order_status = request.query_params.get("status")
        if order_status and order_status != "all":
            qs = qs.filter(status=order_status)
        items, pagination = paginate(qs.order_by("-created_at"), params)
        return send_list(OrderSerializer(items, many=True).data, pagination)


class OrderDetailView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, order_id):
        order = get_object_or_404(orders_with_items(), pk=order_id)
        if order.user_id != request.user.pk and not is_admin(request.user):
            return send_error("Unauthorized.", status.HTTP_403_FORBIDDEN)
        return send_data(OrderSerializer(order).data)


class OrderStatusView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, order_id):
        order = get_object_or_404(Order, pk=order_id)
        admin = is_admin(request.user)
        sells_item = order.items.filter(artist=request.user).exists()
        if not (admin or sells_item):
            return send_error("Unauthorized.", status.HTTP_403_FORBIDDEN)

        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        if not admin and new_status not in ARTIST_STATUSES:
            return send_error("Artists can only mark orders as shipped or delivered.", status.HTTP_403_FORBIDDEN)
        if order.status == Order.STATUS_CANCELLED and new_status != Order.STATUS_CANCELLED:
            return send_error("Cannot change status of a cancelled order.")

        previous = order.status
        with transaction.atomic():
            if new_status == Order.STATUS_CANCELLED:
                reason = serializer.validated_data.get("refundReason") or "Order cancelled by admin"
                order = cancel_order(order, reason)
            else:
                order.status = new_status
                order.save(update_fields=["status", "updated_at"])
            if admin:
                log_admin_action(
                    request.user,
                    AdminActivity.ACTION_UPDATE,
                    AdminActivity.TARGET_ORDER,
                    order.pk,
                    details={"from": previous, "to": new_status},
                    request=request,
                )

        order = orders_with_items().get(pk=order.pk)
        return send_message(f"Order status updated to {new_status}", OrderSerializer(order).data)


class CreatePaymentIntentView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        order_id = request.data.get("orderId")
        if not order_id:
            return send_error("Order ID is required")
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return send_error("Order not found", status.HTTP_404_NOT_FOUND)
        if order.user_id != request.user.pk:
            return send_error("Unauthorized", status.HTTP_403_FORBIDDEN)
        if order.status != Order.STATUS_PENDING:
            return send_error("Order is not pending payment")
        # Orders from accepted offers are created without an address
        if not order.shipping_address:
            try:
                order.shipping_address = clean_shipping_address(request.data.get("shippingAddress"))
            except CheckoutError as exc:
                return send_error(str(exc))
            order.save(update_fields=["shipping_address", "updated_at"])

        try:
            intent = payments.create_payment_intent(order)
        except payments.PaymentNotConfigured as exc:
            return send_error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return send_data(intent)


class PaymentStatusView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, order_id):
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return send_error("Order not found", status.HTTP_404_NOT_FOUND)
        if order.user_id != request.user.pk and not is_admin(request.user):
            return send_error("Unauthorized", status.HTTP_403_FORBIDDEN)
        return send_data({
            "orderId": order.pk,
            "orderStatus": order.status,
            "paymentStatus": payments.payment_status(order),
        })
