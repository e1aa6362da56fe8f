from rest_framework import serializers

from .models import AdminActivity, PlatformSettings


class AdminActivitySerializer(serializers.ModelSerializer):
    admin = serializers.SerializerMethodField()
    targetType = serializers.CharField(source="target_type")
    targetId = serializers.CharField(source="target_id")
    ipAddress = serializers.CharField(source="ip_address")
    userAgent = serializers.CharField(source="user_agent")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = AdminActivity
        fields = (
            "id", "admin", "action", "targetType", "targetId", "details",
            "ipAddress", "userAgent", "createdAt", "updatedAt",
        )

    def get_admin(self, obj):
        return {
            "id": obj.admin.pk,
            "userName": obj.admin.username,
            "email": obj.admin.email,
            "role": obj.admin.role,
        }


class PlatformSettingsSerializer(serializers.ModelSerializer):
    platformCommission = serializers.DecimalField(
        source="platform_commission", max_digits=5, decimal_places=2,
        min_value=0, max_value=100, coerce_to_string=False, required=False,
    )
    subscriptionTiers = serializers.JSONField(source="subscription_tiers", required=False)
    rateLimits = serializers.JSONField(source="rate_limits", required=False)
    lastUpdatedBy = serializers.PrimaryKeyRelatedField(source="last_updated_by", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = PlatformSettings
        fields = (
            "platformCommission", "storage", "subscriptionTiers", "features",
            "rateLimits", "email", "geolocation", "maintenance", "theme",
            "hero", "display", "lastUpdatedBy", "updatedAt",
        )
        extra_kwargs = {
            field: {"required": False}
            for field in ("storage", "features", "email", "geolocation", "maintenance", "theme", "hero", "display")
        }

    def validate(self, attrs):
        for field, value in attrs.items():
            if field in PlatformSettings.OBJECT_FIELDS and not isinstance(value, dict):
                raise serializers.ValidationError({field: "Must be an object."})
        if "subscription_tiers" in attrs and not isinstance(attrs["subscription_tiers"], list):
            raise serializers.ValidationError({"subscriptionTiers": "Must be a list."})
        return attrs

    def update(self, instance, validated_data):
        user = self.context.get("user")
        return instance.apply_updates(validated_data, user=user)


def public_config(settings_obj):
    maintenance = settings_obj.maintenance or {}
    return {
        "theme": settings_obj.theme,
        "maintenance": {
            "enabled": maintenance.get("enabled", False),
            "message": maintenance.get("message", ""),
        },
        "features": settings_obj.features,
        "geolocation": settings_obj.geolocation,
        "hero": settings_obj.hero,
        "display": settings_obj.display,
    }
