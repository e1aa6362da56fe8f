from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer

from .models import Attendance, Event

LOCATION_KEYS = {
    "venue", "street", "streetNum", "zipCode", "city", "country", "isOnline", "onlineUrl",
}


class EventSerializer(serializers.ModelSerializer):
    artist = UserSummarySerializer(read_only=True)
    startDateTime = serializers.DateTimeField(source="start_date_time")
    endDateTime = serializers.DateTimeField(source="end_date_time")
    location = serializers.JSONField(required=False)
    price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False, coerce_to_string=False,
    )
    maxCapacity = serializers.IntegerField(source="max_capacity", min_value=0, required=False)
    isPublic = serializers.BooleanField(source="is_public", required=False)
    attendeeCount = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Event
        fields = (
            "id", "title", "description", "artist", "startDateTime", "endDateTime",
            "location", "price", "maxCapacity", "category", "image", "isPublic",
            "attendeeCount", "createdAt", "updatedAt",
        )

    def get_attendeeCount(self, obj):
        count = getattr(obj, "attendee_count", None)
        if count is None:
            count = obj.active_attendances().count()
        return count

    def validate_location(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("location must be an object.")
        unknown = set(value) - LOCATION_KEYS
        if unknown:
            raise serializers.ValidationError(f"Unknown location keys: {', '.join(sorted(unknown))}")
        value = {"isOnline": False, **value}
        if value["isOnline"] and not value.get("onlineUrl"):
            raise serializers.ValidationError("Online events need an onlineUrl.")
        return value

    def validate(self, attrs):
        start = attrs.get("start_date_time", getattr(self.instance, "start_date_time", None))
        end = attrs.get("end_date_time", getattr(self.instance, "end_date_time", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"endDateTime": "End date must be after start date."})
        return attrs


class AttendanceSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    ticketCode = serializers.CharField(source="ticket_code", read_only=True)
    purchasedAt = serializers.DateTimeField(source="purchased_at", read_only=True)

    class Meta:
        model = Attendance
        fields = ("id", "user", "status", "ticketCode", "purchasedAt")
