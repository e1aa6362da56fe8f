from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from events.models import Event
from gallery.models import Artwork

from .models import CartItem, Order, OrderItem


class CartArtworkSerializer(serializers.ModelSerializer):
    isForSale = serializers.BooleanField(source="is_for_sale")
    totalInStock = serializers.IntegerField(source="total_in_stock")
    price = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    artist = UserSummarySerializer()

    class Meta:
        model = Artwork
        fields = ("id", "title", "price", "images", "isForSale", "totalInStock", "artist")


class CartEventSerializer(serializers.ModelSerializer):
    startDateTime = serializers.DateTimeField(source="start_date_time")
    endDateTime = serializers.DateTimeField(source="end_date_time")
    price = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    artist = UserSummarySerializer()

    class Meta:
        model = Event
        fields = ("id", "title", "price", "image", "startDateTime", "endDateTime", "artist")


class CartItemSerializer(serializers.ModelSerializer):
    itemType = serializers.CharField(source="item_type")
    artwork = CartArtworkSerializer()
    event = CartEventSerializer()
    lineTotal = serializers.DecimalField(
        source="line_total", max_digits=10, decimal_places=2, coerce_to_string=False,
    )
    addedAt = serializers.DateTimeField(source="added_at")

    class Meta:
        model = CartItem
        fields = ("id", "itemType", "artwork", "event", "quantity", "lineTotal", "addedAt")
        read_only_fields = fields


class AddToCartSerializer(serializers.Serializer):
    artworkId = serializers.IntegerField(required=False)
    eventId = serializers.IntegerField(required=False)
    quantity = serializers.IntegerField(min_value=1, default=1)

    def validate(self, attrs):
        if not attrs.get("artworkId") and not attrs.get("eventId"):
            raise serializers.ValidationError("Artwork ID or Event ID is required.")
        return attrs


class UpdateCartSerializer(serializers.Serializer):
    itemId = serializers.IntegerField()
    quantity = serializers.IntegerField(
        min_value=1, error_messages={"min_value": "Quantity must be at least 1."},
    )


def cart_summary(items):
    return {
        "items": CartItemSerializer(items, many=True).data,
        "totalItems": sum(item.quantity for item in items),
        "totalPrice": sum((item.line_total for item in items), 0),
    }


class OrderItemSerializer(serializers.ModelSerializer):
    itemType = serializers.CharField(source="item_type")
    price = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    platformFee = serializers.DecimalField(
        source="platform_fee", max_digits=10, decimal_places=2, coerce_to_string=False,
    )
    artistEarnings = serializers.DecimalField(
        source="artist_earnings", max_digits=10, decimal_places=2, coerce_to_string=False,
    )
    ticketCodes = serializers.JSONField(source="ticket_codes")

    class Meta:
        model = OrderItem
        fields = (
            "id", "itemType", "artwork", "event", "artist", "title", "image",
            "price", "quantity", "platformFee", "artistEarnings", "ticketCodes",
        )
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read-only order representation; orders are built by checkout."""

    user = UserSummarySerializer()
    orderNumber = serializers.CharField(source="order_number")
    items = OrderItemSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    totalAmount = serializers.DecimalField(
        source="total_amount", max_digits=10, decimal_places=2, coerce_to_string=False,
    )
    platformFeeTotal = serializers.DecimalField(
        source="platform_fee_total", max_digits=10, decimal_places=2, coerce_to_string=False,
    )
    platformFeeRate = serializers.DecimalField(
        source="platform_fee_rate", max_digits=5, decimal_places=4, coerce_to_string=False,
    )
    shippingAddress = serializers.JSONField(source="shipping_address")
    paymentId = serializers.CharField(source="payment_id")
    refundedAt = serializers.DateTimeField(source="refunded_at")
    refundReason = serializers.CharField(source="refund_reason")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Order
        fields = (
            "id", "orderNumber", "user", "items", "subtotal", "totalAmount",
            "platformFeeTotal", "platformFeeRate", "shippingAddress", "status",
            "paymentId", "refundedAt", "refundReason", "createdAt", "updatedAt",
        )
        read_only_fields = fields


class SaleSerializer(OrderSerializer):
    """An order seen by one artist: only their items and their share."""

    def to_representation(self, instance):
        data = super().to_representation(instance)
        artist_id = self.context["artist"].pk
        data["items"] = [item for item in data["items"] if item["artist"] == artist_id]
        data["totalAmount"] = sum(item["price"] * item["quantity"] for item in data["items"])
        data["artistEarnings"] = sum(item["artistEarnings"] for item in data["items"])
        return data


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice for choice, _ in Order.STATUS_CHOICES])
    refundReason = serializers.CharField(required=False, allow_blank=True, max_length=255)
