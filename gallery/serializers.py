from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer

from .models import Artwork, Review, VideoPurchase
from .videos import has_video_access, redact_video

VIDEO_TEXT_KEYS = {
    "fullVideoUrl", "previewVideoUrl", "subtitlesUrl", "backgroundAudioUrl",
    "quality", "synopsis", "director",
}


def _string_list(value, field):
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise serializers.ValidationError(f"{field} must be a list of strings.")
    return [v.strip() for v in value if v.strip()]


class ArtworkSerializer(serializers.ModelSerializer):
    """Read and write representation of an artwork.

    The artist is taken from the request on create and cannot be changed.
    """

    artist = UserSummarySerializer(read_only=True)
    originalPrice = serializers.DecimalField(
        source="original_price", max_digits=10, decimal_places=2,
        min_value=Decimal("0"), required=False, allow_null=True, coerce_to_string=False,
    )
    price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0"), coerce_to_string=False,
    )
    isForSale = serializers.BooleanField(source="is_for_sale", required=False)
    materialsUsed = serializers.JSONField(source="materials_used", required=False)
    colors = serializers.JSONField(required=False)
    dimensions = serializers.JSONField(required=False)
    images = serializers.JSONField(required=False)
    video = serializers.JSONField(required=False)
    totalInStock = serializers.IntegerField(source="total_in_stock", min_value=0, required=False)
    averageRating = serializers.DecimalField(
        source="average_rating", max_digits=2, decimal_places=1, read_only=True, coerce_to_string=False,
    )
    numOfReviews = serializers.IntegerField(source="num_of_reviews", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Artwork
        fields = (
            "id", "title", "description", "artist", "originalPrice", "price",
            "isForSale", "category", "materialsUsed", "colors", "dimensions",
            "images", "video", "totalInStock", "averageRating", "numOfReviews",
            "createdAt", "updatedAt",
        )

    def validate_materialsUsed(self, value):
        return _string_list(value, "materialsUsed")

    def validate_colors(self, value):
        return _string_list(value, "colors")

    def validate_images(self, value):
        return _string_list(value, "images")

    def validate_dimensions(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("dimensions must be an object.")
        allowed = {"width", "height", "depth", "unit"}
        unknown = set(value) - allowed
        if unknown:
            raise serializers.ValidationError(f"Unknown dimension keys: {', '.join(sorted(unknown))}")
        for key in ("width", "height", "depth"):
            if key in value and value[key] is not None:
                if not isinstance(value[key], (int, float)) or value[key] < 0:
                    raise serializers.ValidationError(f"{key} must be a positive number.")
        return {"unit": "cm", **value}

    def validate_video(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("video must be an object.")
        unknown = set(value) - VIDEO_TEXT_KEYS - {"isPaid", "duration"}
        if unknown:
            raise serializers.ValidationError(f"Unknown video keys: {', '.join(sorted(unknown))}")
        for key in VIDEO_TEXT_KEYS & set(value):
            if value[key] is not None and not isinstance(value[key], str):
                raise serializers.ValidationError(f"{key} must be a string.")
        if "isPaid" in value and not isinstance(value["isPaid"], bool):
            raise serializers.ValidationError("isPaid must be a boolean.")
        duration = value.get("duration")
        if duration is not None and (not isinstance(duration, (int, float)) or duration < 0):
            raise serializers.ValidationError("duration must be a positive number.")
        return value

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get("request")
        viewer = getattr(request, "user", None)
        if data.get("video") and not has_video_access(instance, viewer):
            data["video"] = redact_video(data["video"])
        return data


class ReviewSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    artwork = serializers.PrimaryKeyRelatedField(read_only=True)
    isVerified = serializers.BooleanField(source="is_verified", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Review
        fields = (
            "id", "user", "artwork", "title", "comment", "rating",
            "isVerified", "createdAt", "updatedAt",
        )
        extra_kwargs = {
            "rating": {"min_value": 1, "max_value": 5},
        }


class PurchasedVideoArtworkSerializer(serializers.ModelSerializer):
    artist = UserSummarySerializer(read_only=True)

    class Meta:
        model = Artwork
        fields = ("id", "title", "category", "price", "video", "artist")


class VideoPurchaseSerializer(serializers.ModelSerializer):
    artwork = PurchasedVideoArtworkSerializer(read_only=True)
    pricePaid = serializers.DecimalField(
        source="price_paid", max_digits=10, decimal_places=2, coerce_to_string=False,
    )
    purchaseType = serializers.CharField(source="purchase_type")
    order = serializers.PrimaryKeyRelatedField(read_only=True)
    purchasedAt = serializers.DateTimeField(source="created_at")

    class Meta:
        model = VideoPurchase
        fields = ("id", "artwork", "pricePaid", "purchaseType", "order", "purchasedAt")
