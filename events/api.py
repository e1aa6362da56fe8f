import logging

from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import permissions, status, views

from core.pagination import apply_sort, paginate, parse_pagination
from core.permissions import IsVerifiedArtist, is_admin
from core.responses import send_data, send_error, send_list, send_message
from dashboard.activity import log_admin_action
from dashboard.models import AdminActivity

from .models import Attendance, Event
from .serializers import AttendanceSerializer, EventSerializer

logger = logging.getLogger(__name__)

EVENT_SORT_FIELDS = {
    "startDateTime": "start_date_time",
    "price": "price",
    "createdAt": "created_at",
}

EVENT_LIST_DEFAULTS = {"sort": "startDateTime"}


def with_attendee_count(qs):
    return qs.select_related("artist").annotate(
        attendee_count=Count(
            "attendances", filter=~Q(attendances__status=Attendance.STATUS_CANCELLED)
        )
    )


def visible_events(user):
    """Public events, plus the caller's own private ones."""
    visible = Q(is_public=True)
    if user.is_authenticated:
        if is_admin(user):
            return Event.objects.all()
        visible |= Q(artist=user)
    return Event.objects.filter(visible)


def filter_events(qs, query):
    category = query.get("category")
    if category:
        qs = qs.filter(category=category)
    artist = query.get("artist")
    if artist:
        qs = qs.filter(artist_id=artist)
    city = query.get("city")
    if city:
        qs = qs.filter(location__city__icontains=city)
    is_online = query.get("isOnline")
    if is_online in ("true", "false"):
        qs = qs.filter(location__isOnline=is_online == "true")
    if query.get("upcoming") == "true":
        qs = qs.filter(start_date_time__gte=timezone.now())
    search = query.get("search")
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    return qs


def can_manage(user, event):
    return event.artist_id == user.pk or is_admin(user)


class EventListView(views.APIView):
    def get_permissions(self):
        if self.request.method == "POST":
            return [IsVerifiedArtist()]
        return [permissions.AllowAny()]

    def get(self, request):
        params = parse_pagination(request.query_params, EVENT_LIST_DEFAULTS)
        qs = filter_events(visible_events(request.user), request.query_params)
        qs = apply_sort(with_attendee_count(qs), params.sort, EVENT_SORT_FIELDS, "start_date_time")
        items, pagination = paginate(qs, params)
        return send_list(EventSerializer(items, many=True).data, pagination)

    def post(self, request):
        serializer = EventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = serializer.save(artist=request.user)
        logger.info("Event %s created by %s", event.pk, request.user.pk)
        return send_data(EventSerializer(event).data, status=status.HTTP_201_CREATED)


class EventDetailView(views.APIView):
    def get_permissions(self):
        if self.request.method in ("PATCH", "PUT", "DELETE"):
            return [permissions.IsAuthenticated()]
        return [permissions.AllowAny()]

    def get(self, request, event_id):
        event = get_object_or_404(with_attendee_count(visible_events(request.user)), pk=event_id)
        return send_data(EventSerializer(event).data)

    def patch(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)
        if not can_manage(request.user, event):
            return send_error("You can only update your own events.", status.HTTP_403_FORBIDDEN)

        serializer = EventSerializer(event, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            event = serializer.save()
            if event.artist_id != request.user.pk:
                log_admin_action(
                    request.user,
                    AdminActivity.ACTION_UPDATE,
                    AdminActivity.TARGET_EVENT,
                    event.pk,
                    details={"fields": sorted(request.data.keys())},
                    request=request,
                )
        return send_data(EventSerializer(event).data)

    put = patch

    def delete(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)
        if not can_manage(request.user, event):
            return send_error("You can only delete your own events.", status.HTTP_403_FORBIDDEN)

        with transaction.atomic():
            if event.artist_id != request.user.pk:
                log_admin_action(
                    request.user,
                    AdminActivity.ACTION_DELETE,
                    AdminActivity.TARGET_EVENT,
                    event.pk,
                    details={"title": event.title, "artist": event.artist_id},
                    request=request,
                )
            event.delete()
        return send_message("Event deleted successfully.")


class ArtistEventsView(views.APIView):
    def get(self, request, artist_id):
        params = parse_pagination(request.query_params, EVENT_LIST_DEFAULTS)
        qs = visible_events(request.user).filter(artist_id=artist_id)
        qs = apply_sort(with_attendee_count(qs), params.sort, EVENT_SORT_FIELDS, "start_date_time")
        items, pagination = paginate(qs, params)
        return send_list(EventSerializer(items, many=True).data, pagination)


class AttendEventView(views.APIView):
    """Join a free event directly, or leave an event."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, event_id):
        with transaction.atomic():
            # Row lock serializes capacity checks for the same event
            event = get_object_or_404(Event.objects.select_for_update(), pk=event_id)
            if event.has_ended:
                return send_error("Cannot join past events.")
            if not event.is_free:
                return send_error("This event requires a ticket. Add it to your cart instead.")
            if event.active_attendances().filter(user=request.user).exists():
                return send_error("You have already joined this event.")
            if event.seats_left() == 0:
                return send_error("Event is full.")
            attendance = Attendance.objects.create(event=event, user=request.user)

        logger.info("User %s joined event %s", request.user.pk, event.pk)
        return send_message(
            "Successfully joined event.",
            {
                "event": EventSerializer(event).data,
                "ticketCode": attendance.ticket_code,
            },
        )

    def delete(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)
        tickets = event.attendances.filter(user=request.user)
        if not tickets.exists():
            return send_error("You are not registered for this event.")

        # Tickets bought through an order are voided by cancelling the order
        purchased = set()
        for codes in event.order_items.filter(order__user=request.user).values_list("ticket_codes", flat=True):
            purchased.update(codes or [])
        removed, _ = tickets.exclude(ticket_code__in=purchased).delete()
        if not removed:
            return send_error("Purchased tickets can only be cancelled through their order.")
        return send_message("Successfully left event.", EventSerializer(event).data)


class EventAttendeesView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)
        if not can_manage(request.user, event):
            return send_error("Unauthorized access to attendee list.", status.HTTP_403_FORBIDDEN)
        attendances = event.attendances.select_related("user")
        return send_data(AttendanceSerializer(attendances, many=True).data)
