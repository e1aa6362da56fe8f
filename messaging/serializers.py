from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from gallery.models import Artwork

from .models import Conversation, Message


class ConversationArtworkSerializer(serializers.ModelSerializer):
    image = serializers.SerializerMethodField()

    class Meta:
        model = Artwork
        fields = ("id", "title", "price", "image")

    def get_image(self, obj):
        return (obj.images or [""])[0]


class MessageSerializer(serializers.ModelSerializer):
    conversation = serializers.PrimaryKeyRelatedField(read_only=True)
    sender = UserSummarySerializer(read_only=True)
    offerAmount = serializers.DecimalField(
        source="offer_amount", max_digits=10, decimal_places=2, coerce_to_string=False, read_only=True,
    )
    offerArtwork = serializers.PrimaryKeyRelatedField(source="offer_artwork", read_only=True)
    offerStatus = serializers.CharField(source="offer_status", read_only=True)
    readBy = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Message
        fields = (
            "id", "conversation", "sender", "content", "type", "offerAmount",
            "offerArtwork", "offerStatus", "readBy", "createdAt",
        )

    def get_readBy(self, obj):
        return [receipt.user_id for receipt in obj.receipts.all()]


class ConversationSerializer(serializers.ModelSerializer):
    """Inbox entry; ``unreadCount`` is for the user in ``context["user"]``."""

    participants = UserSummarySerializer(many=True, read_only=True)
    artwork = ConversationArtworkSerializer(read_only=True)
    lastMessage = serializers.SerializerMethodField()
    currentOffer = serializers.DecimalField(
        source="current_offer", max_digits=10, decimal_places=2, coerce_to_string=False, read_only=True,
    )
    negotiationStatus = serializers.CharField(source="negotiation_status", read_only=True)
    unreadCount = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Conversation
        fields = (
            "id", "participants", "artwork", "status", "lastMessage", "currentOffer",
            "negotiationStatus", "unreadCount", "createdAt", "updatedAt",
        )

    def get_lastMessage(self, obj):
        return {
            "content": obj.last_message_content,
            "sender": obj.last_message_sender_id,
            "createdAt": obj.last_message_at,
        }

    def get_unreadCount(self, obj):
        user = self.context.get("user")
        if user is None:
            return 0
        for membership in obj.memberships.all():
            if membership.user_id == user.pk:
                return membership.unread_count
        return 0


class StartConversationSerializer(serializers.Serializer):
    participantId = serializers.IntegerField()
    artworkId = serializers.IntegerField(required=False, allow_null=True)
    initialMessage = serializers.CharField(
        required=False, allow_blank=True, max_length=Message.MAX_LENGTH, trim_whitespace=True,
    )


class SendMessageSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=Message.MAX_LENGTH, trim_whitespace=True)


class OfferSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    artworkId = serializers.IntegerField(required=False, allow_null=True)


class OfferResponseSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Message.OFFER_ACCEPTED, Message.OFFER_REJECTED])
