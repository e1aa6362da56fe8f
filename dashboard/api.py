import logging
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework import views

from core.pagination import paginate, parse_pagination
from core.permissions import IsAdmin, IsSuperAdmin
from core.responses import send_data, send_error, send_list, send_message
from events.models import Event
from gallery.models import Artwork
from orders.models import Order

from .activity import log_admin_action
from .models import AdminActivity, PlatformSettings
from .serializers import AdminActivitySerializer, PlatformSettingsSerializer, public_config

logger = logging.getLogger(__name__)

User = get_user_model()


class PlatformSettingsView(views.APIView):
    permission_classes = [IsSuperAdmin]

    def get(self, request):
        return send_data(PlatformSettingsSerializer(PlatformSettings.get_settings()).data)

    def patch(self, request):
        allowed = set(PlatformSettingsSerializer.Meta.fields) - {"lastUpdatedBy", "updatedAt"}
        changes = {key: value for key, value in request.data.items() if key in allowed}
        if not changes:
            return send_error("No valid fields to update.")

        settings_obj = PlatformSettings.get_settings()
        serializer = PlatformSettingsSerializer(
            settings_obj, data=changes, partial=True, context={"user": request.user}
        )
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            settings_obj = serializer.save()
            log_admin_action(
                request.user,
                AdminActivity.ACTION_SETTINGS_UPDATE,
                AdminActivity.TARGET_PLATFORM_SETTINGS,
                PlatformSettings.GLOBAL_KEY,
                details={"fields": sorted(changes)},
                request=request,
            )
        return send_data(PlatformSettingsSerializer(settings_obj).data)


class MaintenanceView(views.APIView):
    permission_classes = [IsSuperAdmin]

    def post(self, request):
        updates = {"enabled": bool(request.data.get("enabled", False))}
        if request.data.get("message"):
            updates["message"] = request.data["message"]
        if isinstance(request.data.get("allowedIPs"), list):
            updates["allowedIPs"] = request.data["allowedIPs"]

        with transaction.atomic():
            settings_obj = PlatformSettings.get_settings().apply_updates(
                {"maintenance": updates}, user=request.user
            )
            log_admin_action(
                request.user,
                AdminActivity.ACTION_SETTINGS_UPDATE,
                AdminActivity.TARGET_PLATFORM_SETTINGS,
                PlatformSettings.GLOBAL_KEY,
                details={"maintenance": updates},
                request=request,
            )
        enabled = settings_obj.maintenance.get("enabled")
        return send_message(
            "Maintenance mode enabled" if enabled else "Maintenance mode disabled",
            settings_obj.maintenance,
        )


class PublicConfigView(views.APIView):
    authentication_classes = []

    def get(self, request):
        return send_data(public_config(PlatformSettings.get_settings()))


class PlatformStatsView(views.APIView):
    """Overview counters for the admin dashboard."""

    permission_classes = [IsAdmin]

    def get(self, request):
        now = timezone.now()
        roles = dict(User.objects.values_list("role").annotate(n=Count("id")))
        order_statuses = dict(Order.objects.values_list("status").annotate(n=Count("id")))
        revenue = Order.objects.filter(status__in=Order.REVENUE_STATUSES).aggregate(
            total=Sum("total_amount"), fees=Sum("platform_fee_total")
        )

        return send_data({
            "users": {
                "total": sum(roles.values()),
                "byRole": roles,
                "pendingArtists": User.objects.filter(artist_status=User.ARTIST_PENDING).count(),
                "suspended": User.objects.filter(is_active=False).count(),
            },
            "artworks": {
                "total": Artwork.objects.count(),
                "forSale": Artwork.objects.filter(is_for_sale=True).count(),
            },
            "events": {
                "total": Event.objects.count(),
                "upcoming": Event.objects.filter(start_date_time__gte=now).count(),
            },
            "orders": {
                "total": sum(order_statuses.values()),
                "byStatus": order_statuses,
            },
            "revenue": {
                "total": revenue["total"] or Decimal("0.00"),
                "platformFees": revenue["fees"] or Decimal("0.00"),
            },
        })


class AdminActivityListView(views.APIView):
    permission_classes = [IsAdmin]

    def get(self, request):
        params = parse_pagination(request.query_params, {"limit": 20})
        qs = AdminActivity.objects.select_related("admin")
        admin_id = request.query_params.get("admin")
        if admin_id:
            qs = qs.filter(admin_id=admin_id)
        action = request.query_params.get("action")
        if action:
            qs = qs.filter(action=action)
        target_type = request.query_params.get("targetType")
        if target_type:
            qs = qs.filter(target_type=target_type)
        items, pagination = paginate(qs.order_by("-created_at"), params)
        return send_list(AdminActivitySerializer(items, many=True).data, pagination)
