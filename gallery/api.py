import logging

from django.db import transaction
from django.db.models import Avg, Count, Q, Sum
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, views
from rest_framework.parsers import MultiPartParser

from core.pagination import apply_sort, paginate, parse_pagination
from core.permissions import IsVerifiedArtist, is_admin
from core.responses import send_data, send_error, send_list, send_message
from core.uploads import upload_image
from dashboard.activity import log_admin_action
from dashboard.models import AdminActivity

from .models import Artwork, Review
from .serializers import ArtworkSerializer, ReviewSerializer

logger = logging.getLogger(__name__)

ARTWORK_SORT_FIELDS = {
    "createdAt": "created_at",
    "price": "price",
    "title": "title",
    "averageRating": "average_rating",
}

PURCHASED_STATUSES = ("paid", "shipped", "delivered")


def filter_artworks(qs, query):
    category = query.get("category")
    if category:
        qs = qs.filter(category=category)
    artist = query.get("artist")
    if artist:
        qs = qs.filter(artist_id=artist)
    is_for_sale = query.get("isForSale")
    if is_for_sale in ("true", "false"):
        qs = qs.filter(is_for_sale=is_for_sale == "true")
    for param, lookup in (("minPrice", "price__gte"), ("maxPrice", "price__lte")):
        value = query.get(param)
        if value:
            try:
                qs = qs.filter(**{lookup: float(value)})
            except ValueError:
                logger.debug("Ignoring invalid %s=%r", param, value)
    search = query.get("search")
    if search:
        qs = qs.filter(
            Q(title__icontains=search)
            | Q(description__icontains=search)
            | Q(artist__first_name__icontains=search)
            | Q(artist__last_name__icontains=search)
            | Q(artist__username__icontains=search)
        )
    return qs


def can_manage(user, artwork):
    return artwork.artist_id == user.pk or is_admin(user)


class ArtworkListView(views.APIView):
    def get_permissions(self):
        if self.request.method == "POST":
            return [IsVerifiedArtist()]
        return [permissions.AllowAny()]

    def get(self, request):
        params = parse_pagination(request.query_params)
        qs = filter_artworks(Artwork.objects.select_related("artist"), request.query_params)
        qs = apply_sort(qs, params.sort, ARTWORK_SORT_FIELDS)
        items, pagination = paginate(qs, params)
        data = ArtworkSerializer(items, many=True, context={"request": request}).data
        return send_list(data, pagination)

    def post(self, request):
        serializer = ArtworkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        artwork = serializer.save(artist=request.user)
        logger.info("Artwork %s created by %s", artwork.pk, request.user.pk)
        return send_data(
            ArtworkSerializer(artwork, context={"request": request}).data, status=status.HTTP_201_CREATED
        )


class ArtworkDetailView(views.APIView):
    def get_permissions(self):
        if self.request.method in ("PATCH", "PUT", "DELETE"):
            return [permissions.IsAuthenticated()]
        return [permissions.AllowAny()]

    def get_object(self, artwork_id):
        return get_object_or_404(Artwork.objects.select_related("artist"), pk=artwork_id)

    def get(self, request, artwork_id):
        artwork = self.get_object(artwork_id)
        return send_data(ArtworkSerializer(artwork, context={"request": request}).data)

    def patch(self, request, artwork_id):
        artwork = self.get_object(artwork_id)
        if not can_manage(request.user, artwork):
            return send_error("You can only edit your own artworks.", status.HTTP_403_FORBIDDEN)

        serializer = ArtworkSerializer(artwork, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            artwork = serializer.save()
            if artwork.artist_id != request.user.pk:
                log_admin_action(
                    request.user,
                    AdminActivity.ACTION_UPDATE,
                    AdminActivity.TARGET_ARTWORK,
                    artwork.pk,
                    details={"fields": sorted(request.data.keys())},
                    request=request,
                )
        return send_data(ArtworkSerializer(artwork, context={"request": request}).data)

    put = patch

    def delete(self, request, artwork_id):
        artwork = self.get_object(artwork_id)
        if not can_manage(request.user, artwork):
            return send_error("You can only delete your own artworks.", status.HTTP_403_FORBIDDEN)

        with transaction.atomic():
            if artwork.artist_id != request.user.pk:
                log_admin_action(
                    request.user,
                    AdminActivity.ACTION_DELETE,
                    AdminActivity.TARGET_ARTWORK,
                    artwork.pk,
                    details={"title": artwork.title, "artist": artwork.artist_id},
                    request=request,
                )
            artwork.delete()
        return send_message("Artwork deleted successfully.")


class ArtistArtworksView(views.APIView):
    def get(self, request, artist_id):
        params = parse_pagination(request.query_params)
        qs = Artwork.objects.select_related("artist").filter(artist_id=artist_id)
        qs = apply_sort(qs, params.sort, ARTWORK_SORT_FIELDS)
        items, pagination = paginate(qs, params)
        data = ArtworkSerializer(items, many=True, context={"request": request}).data
        return send_list(data, pagination)


class ArtistStatsView(views.APIView):
    permission_classes = [IsVerifiedArtist]

    def get(self, request):
        from orders.models import OrderItem

        artworks = Artwork.objects.filter(artist=request.user)
        stats = artworks.aggregate(
            total=Count("id"),
            reviews=Sum("num_of_reviews"),
            rating=Avg("average_rating", filter=Q(num_of_reviews__gt=0)),
        )
        sales = OrderItem.objects.filter(
            artist=request.user, order__status__in=PURCHASED_STATUSES
        ).aggregate(sold=Sum("quantity"), earnings=Sum("artist_earnings"))
        return send_data({
            "totalArtworks": stats["total"],
            "forSale": artworks.filter(is_for_sale=True).count(),
            "totalReviews": stats["reviews"] or 0,
            "averageRating": round(float(stats["rating"] or 0), 1),
            "itemsSold": sales["sold"] or 0,
            "totalEarnings": sales["earnings"] or 0,
        })


class ArtworkImageUploadView(views.APIView):
    permission_classes = [IsVerifiedArtist]
    parser_classes = [MultiPartParser]

    def post(self, request):
        image = request.FILES.get("image")
        if image is None:
            return send_error("No image uploaded.")
        return send_data(upload_image(image, "artworks"), status=status.HTTP_201_CREATED)


def has_purchased(user, artwork):
    return artwork.order_items.filter(
        order__user=user, order__status__in=PURCHASED_STATUSES
    ).exists()


class ArtworkReviewsView(views.APIView):
    def get_permissions(self):
        if self.request.method == "POST":
            return [permissions.IsAuthenticated()]
        return [permissions.AllowAny()]

    def get(self, request, artwork_id):
        artwork = get_object_or_404(Artwork, pk=artwork_id)
        params = parse_pagination(request.query_params, {"limit": 10})
        qs = apply_sort(
            artwork.reviews.select_related("user"),
            params.sort,
            {"createdAt": "created_at", "rating": "rating"},
        )
        items, pagination = paginate(qs, params)
        return send_list(ReviewSerializer(items, many=True).data, pagination)

    def post(self, request, artwork_id):
        artwork = get_object_or_404(Artwork, pk=artwork_id)
        if artwork.artist_id == request.user.pk:
            return send_error("You cannot review your own artwork.", status.HTTP_403_FORBIDDEN)
        if Review.objects.filter(user=request.user, artwork=artwork).exists():
            return send_error("You have already reviewed this artwork.")

        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = serializer.save(
            user=request.user,
            artwork=artwork,
            is_verified=has_purchased(request.user, artwork),
        )
        return send_data(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class ReviewDetailView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self, review_id):
        return get_object_or_404(Review.objects.select_related("artwork", "user"), pk=review_id)

    def patch(self, request, review_id):
        review = self.get_object(review_id)
        if review.user_id != request.user.pk and not is_admin(request.user):
            return send_error("You can only edit your own reviews.", status.HTTP_403_FORBIDDEN)
        serializer = ReviewSerializer(review, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        review = serializer.save()
        return send_data(ReviewSerializer(review).data)

    def delete(self, request, review_id):
        review = self.get_object(review_id)
        allowed = (
            review.user_id == request.user.pk
            or review.artwork.artist_id == request.user.pk
            or is_admin(request.user)
        )
        if not allowed:
            return send_error("You cannot delete this review.", status.HTTP_403_FORBIDDEN)
        review.delete()
        return send_message("Review deleted successfully.")
