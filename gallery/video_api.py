from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, views
from rest_framework.throttling import ScopedRateThrottle

from core.exceptions import ApiError
from core.pagination import paginate, parse_pagination
from core.permissions import is_admin
from core.responses import send_data, send_error, send_list
from orders import payments

from .models import Artwork, VideoPurchase
from .serializers import VideoPurchaseSerializer
from .videos import has_video_access


def get_video_artwork(artwork_id):
    return get_object_or_404(Artwork.objects.select_related("artist"), pk=artwork_id)


class VideoAccessView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, artwork_id):
        artwork = get_video_artwork(artwork_id)
        if not artwork.has_video:
            return send_error("This artwork has no video.", status.HTTP_404_NOT_FOUND)
        if not artwork.is_paid_video:
            return send_data({"hasAccess": True, "isFree": True})
        if artwork.artist_id == request.user.pk:
            return send_data({"hasAccess": True, "isOwner": True})

        purchase = VideoPurchase.objects.filter(user=request.user, artwork=artwork).first()
        return send_data({
            "hasAccess": purchase is not None or is_admin(request.user),
            "purchasedAt": purchase.created_at if purchase else None,
            "price": artwork.price,
        })


class VideoStreamView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, artwork_id):
        artwork = get_video_artwork(artwork_id)
        if not artwork.has_video:
            return send_error("This artwork has no video.", status.HTTP_404_NOT_FOUND)
        if not has_video_access(artwork, request.user):
            raise ApiError(
                "You need to purchase this video to watch it.",
                status_code=status.HTTP_403_FORBIDDEN,
                extra={"price": artwork.price},
            )
        return send_data({"streamUrl": artwork.video["fullVideoUrl"]})


class VideoPurchaseView(views.APIView):
    """Start an instant purchase of a paid video.

    Returns a PaymentIntent client secret; access is granted when the
    payment webhook reports success.
    """

    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders"

    def post(self, request, artwork_id):
        artwork = get_video_artwork(artwork_id)
        if not artwork.has_video:
            return send_error("This artwork has no video.")
        if not artwork.is_paid_video:
            return send_error("This video is free, no purchase needed.")
        if artwork.artist_id == request.user.pk:
            return send_error("You cannot purchase your own video.")
        if VideoPurchase.objects.filter(user=request.user, artwork=artwork).exists():
            return send_error("You already own this video.")

        try:
            intent = payments.create_video_payment_intent(artwork, request.user)
        except payments.PaymentNotConfigured as exc:
            return send_error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return send_data({**intent, "price": artwork.price, "artworkId": artwork.pk})


class PurchasedVideosView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        params = parse_pagination(request.query_params)
        qs = VideoPurchase.objects.filter(user=request.user).select_related("artwork__artist")
        items, pagination = paginate(qs.order_by("-created_at"), params)
        return send_list(VideoPurchaseSerializer(items, many=True).data, pagination)
