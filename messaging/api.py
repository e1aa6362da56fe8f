import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Prefetch, Sum
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import permissions, status, views
from rest_framework.throttling import ScopedRateThrottle

from core.pagination import paginate, parse_pagination
from core.responses import send_data, send_error, send_list, send_message
from gallery.models import Artwork
from orders.checkout import CheckoutError, place_offer_order

from .models import Conversation, Message, MessageReceipt, Participant
from .serializers import (
    ConversationSerializer,
    MessageSerializer,
    OfferResponseSerializer,
    OfferSerializer,
    SendMessageSerializer,
    StartConversationSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

MESSAGE_PAGE_DEFAULTS = {"limit": 50}


class ConversationNotFound(Exception):
    pass


def user_conversations(user):
    return (
        Conversation.objects.filter(memberships__user=user)
        .select_related("artwork", "last_message_sender")
        .prefetch_related("participants", "memberships")
    )


def get_conversation(user, conversation_id, lock=False):
    """Return the conversation only when ``user`` takes part in it."""
    qs = Conversation.objects.filter(pk=conversation_id, memberships__user=user)
    if lock:
        qs = qs.select_for_update()
    conversation = qs.select_related("artwork").first()
    if conversation is None:
        raise ConversationNotFound
    return conversation


def messages_with_receipts(qs):
    return qs.select_related("sender").prefetch_related(
        Prefetch("receipts", queryset=MessageReceipt.objects.only("message_id", "user_id"))
    )


def parse_bound(value):
    if not value:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def conversation_data(conversation, user):
    conversation = user_conversations(user).get(pk=conversation.pk)
    return ConversationSerializer(conversation, context={"user": user}).data


class ParticipantMixin:
    permission_classes = [permissions.IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, ConversationNotFound):
            return send_error("Conversation not found.", status.HTTP_404_NOT_FOUND)
        return super().handle_exception(exc)


class ConversationListView(ParticipantMixin, views.APIView):
    def get(self, request):
        params = parse_pagination(request.query_params, {"limit": 20})
        qs = user_conversations(request.user)
        conversation_status = request.query_params.get("status") or Conversation.STATUS_ACTIVE
        if conversation_status != "all":
            qs = qs.filter(status=conversation_status)
        items, pagination = paginate(qs.order_by("-last_message_at"), params)
        data = ConversationSerializer(items, many=True, context={"user": request.user}).data
        return send_list(data, pagination)

    def post(self, request):
        serializer = StartConversationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["participantId"] == request.user.pk:
            return send_error("Cannot start a conversation with yourself.")
        other = User.objects.filter(pk=data["participantId"], is_active=True).first()
        if other is None:
            return send_error("User not found.", status.HTTP_404_NOT_FOUND)
        artwork = None
        if data.get("artworkId"):
            artwork = Artwork.objects.filter(pk=data["artworkId"]).first()
            if artwork is None:
                return send_error("Artwork not found.", status.HTTP_404_NOT_FOUND)

        with transaction.atomic():
            conversation = Conversation.between(request.user, other, artwork)
            content = data.get("initialMessage")
            if content:
                message = Message.objects.create(
                    conversation=conversation, sender=request.user, content=content,
                )
                conversation.record_message(message)

        return send_data(conversation_data(conversation, request.user), status=status.HTTP_201_CREATED)


class ConversationDetailView(ParticipantMixin, views.APIView):
    def get(self, request, conversation_id):
        conversation = get_conversation(request.user, conversation_id)
        return send_data(conversation_data(conversation, request.user))

    def delete(self, request, conversation_id):
        conversation = get_conversation(request.user, conversation_id)
        conversation.status = Conversation.STATUS_ARCHIVED
        conversation.save(update_fields=["status", "updated_at"])
        return send_message("Conversation archived", conversation_data(conversation, request.user))


class MessageListView(ParticipantMixin, views.APIView):
    throttle_scope = "messages"

    def get_throttles(self):
        if self.request.method == "POST":
            return [ScopedRateThrottle()]
        return []

    def get(self, request, conversation_id):
        conversation = get_conversation(request.user, conversation_id)
        limit = parse_pagination(request.query_params, MESSAGE_PAGE_DEFAULTS).limit

        qs = conversation.messages.filter(is_deleted=False)
        before = parse_bound(request.query_params.get("before"))
        if before is not None:
            qs = qs.filter(created_at__lt=before)
        after = parse_bound(request.query_params.get("after"))
        if after is not None:
            qs = qs.filter(created_at__gt=after)

        # Newest page first, returned oldest to newest
        page = list(messages_with_receipts(qs.order_by("-created_at", "-pk"))[:limit])
        page.reverse()
        return send_data({
            "messages": MessageSerializer(page, many=True).data,
            "hasMore": len(page) == limit,
        })

    def post(self, request, conversation_id):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            conversation = get_conversation(request.user, conversation_id, lock=True)
            if conversation.status != Conversation.STATUS_ACTIVE:
                return send_error("This conversation is no longer active.")
            message = Message.objects.create(
                conversation=conversation,
                sender=request.user,
                content=serializer.validated_data["content"],
            )
            conversation.record_message(message)

        message = messages_with_receipts(Message.objects).get(pk=message.pk)
        return send_data(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class MarkReadView(ParticipantMixin, views.APIView):
    def patch(self, request, conversation_id):
        conversation = get_conversation(request.user, conversation_id)
        unread = conversation.messages.exclude(sender=request.user).exclude(receipts__user=request.user)
        now = timezone.now()
        with transaction.atomic():
            MessageReceipt.objects.bulk_create(
                [MessageReceipt(message_id=pk, user=request.user, read_at=now)
                 for pk in unread.values_list("pk", flat=True)],
                ignore_conflicts=True,
            )
            conversation.memberships.filter(user=request.user).update(unread_count=0)
        return send_message("Messages marked as read")


class OfferView(ParticipantMixin, views.APIView):
    """Post a price offer for an artwork owned by one of the participants."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "messages"

    def post(self, request, conversation_id):
        serializer = OfferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        amount = serializer.validated_data["amount"]

        with transaction.atomic():
            conversation = get_conversation(request.user, conversation_id, lock=True)
            if conversation.status != Conversation.STATUS_ACTIVE:
                return send_error("This conversation is no longer active.")

            artwork_id = serializer.validated_data.get("artworkId") or conversation.artwork_id
            if not artwork_id:
                return send_error("No artwork specified for this offer.")
            artwork = Artwork.objects.select_related("artist").filter(pk=artwork_id).first()
            if artwork is None:
                return send_error("Artwork not found.", status.HTTP_404_NOT_FOUND)
            if not conversation.memberships.filter(user_id=artwork.artist_id).exists():
                return send_error("This artwork does not belong to any participant in this conversation.")
            if not artwork.artist.is_verified_artist:
                return send_error(
                    "Offers disabled: the artist is not verified to receive payments.",
                    status.HTTP_403_FORBIDDEN,
                )

            message = Message.objects.create(
                conversation=conversation,
                sender=request.user,
                type=Message.TYPE_OFFER,
                content=f'Price offer: €{amount:.2f} for "{artwork.title}"',
                offer_amount=amount,
                offer_artwork=artwork,
                offer_status=Message.OFFER_PENDING,
            )
            conversation.current_offer = amount
            conversation.negotiation_status = Conversation.NEGOTIATION_PENDING
            conversation.record_message(message)

        message = messages_with_receipts(Message.objects).get(pk=message.pk)
        return send_data(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class OfferResponseView(ParticipantMixin, views.APIView):
    """Accept or reject a pending offer.

    Accepting creates a pending order. The buyer is the responder when the
    artist made the offer, otherwise the offer's sender.
    """

    def patch(self, request, conversation_id, offer_id):
        serializer = OfferResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        decision = serializer.validated_data["status"]

        try:
            with transaction.atomic():
                conversation = get_conversation(request.user, conversation_id, lock=True)
                offer = (
                    conversation.messages.select_for_update()
                    .filter(pk=offer_id, type=Message.TYPE_OFFER)
                    .first()
                )
                if offer is None:
                    return send_error("Offer not found.", status.HTTP_404_NOT_FOUND)
                if offer.sender_id == request.user.pk:
                    return send_error("Cannot respond to your own offer.")
                if offer.offer_status != Message.OFFER_PENDING:
                    return send_error("This offer has already been answered.")

                offer.offer_status = decision
                offer.save(update_fields=["offer_status", "updated_at"])
                conversation.negotiation_status = decision

                content = f"Offer {decision}: €{offer.offer_amount:.2f}"
                order = None
                artwork = offer.offer_artwork or conversation.artwork
                if decision == Message.OFFER_ACCEPTED and artwork is not None:
                    buyer = request.user if offer.sender_id == artwork.artist_id else offer.sender
                    order = place_offer_order(buyer, artwork, offer.offer_amount)
                    link = f"{settings.CLIENT_URL}/checkout?orderId={order.pk}"
                    content += f"\n\nOrder created! Please complete payment:\n[Pay Now]({link})"

                system_message = Message.objects.create(
                    conversation=conversation,
                    sender=request.user,
                    type=Message.TYPE_SYSTEM,
                    content=content,
                )
                conversation.record_message(system_message)
        except CheckoutError as exc:
            return send_error(str(exc))

        logger.info("Offer %s %s by user %s", offer.pk, decision, request.user.pk)
        return send_message(f"Offer {decision}", {
            "offer": MessageSerializer(messages_with_receipts(Message.objects).get(pk=offer.pk)).data,
            "orderId": order.pk if order else None,
        })


class UnreadCountView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        total = Participant.objects.filter(
            user=request.user, conversation__status=Conversation.STATUS_ACTIVE
        ).aggregate(total=Sum("unread_count"))["total"]
        return send_data({"unreadCount": total or 0})
