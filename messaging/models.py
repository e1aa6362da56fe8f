from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone


class Conversation(models.Model):
    """A private thread between two users, optionally about one artwork.

    The latest message is copied onto the conversation so inboxes can be
    listed without touching the message table.
    """

    STATUS_ACTIVE = "active"
    STATUS_ARCHIVED = "archived"
    STATUS_BLOCKED = "blocked"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_ARCHIVED, "Archived"),
        (STATUS_BLOCKED, "Blocked"),
    ]

    NEGOTIATION_NONE = "none"
    NEGOTIATION_PENDING = "pending"
    NEGOTIATION_ACCEPTED = "accepted"
    NEGOTIATION_REJECTED = "rejected"

    NEGOTIATION_CHOICES = [
        (NEGOTIATION_NONE, "None"),
        (NEGOTIATION_PENDING, "Pending"),
        (NEGOTIATION_ACCEPTED, "Accepted"),
        (NEGOTIATION_REJECTED, "Rejected"),
    ]

    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="Participant",
        related_name="conversations",
    )
    artwork = models.ForeignKey(
        "gallery.Artwork",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="conversations",
    )
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    last_message_content = models.TextField(blank=True)
    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    last_message_at = models.DateTimeField(default=timezone.now)

    current_offer = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    negotiation_status = models.CharField(
        max_length=16, choices=NEGOTIATION_CHOICES, default=NEGOTIATION_NONE
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-last_message_at"]
        indexes = [
            models.Index(fields=["-last_message_at"], name="conversation_last_msg_idx"),
        ]

    def __str__(self):
        return f"Conversation {self.pk} ({self.status})"

    @classmethod
    def between(cls, user, other, artwork=None):
        """Return the active conversation of ``user`` and ``other`` about
        ``artwork``, creating it when there is none."""
        conversation = (
            cls.objects.filter(status=cls.STATUS_ACTIVE, artwork=artwork)
            .filter(participants=user)
            .filter(participants=other)
            .first()
        )
        if conversation is None:
            conversation = cls.objects.create(artwork=artwork)
            Participant.objects.bulk_create([
                Participant(conversation=conversation, user=user),
                Participant(conversation=conversation, user=other),
            ])
        return conversation

    def record_message(self, message):
        """Copy ``message`` onto the conversation and bump the others' unread counts."""
        if message.type == Message.TYPE_OFFER:
            self.last_message_content = f"Price offer: €{message.offer_amount:.2f}"
        else:
            self.last_message_content = message.content
        self.last_message_sender_id = message.sender_id
        self.last_message_at = message.created_at
        self.save(update_fields=[
            "last_message_content", "last_message_sender", "last_message_at",
            "current_offer", "negotiation_status", "updated_at",
        ])
        self.memberships.exclude(user_id=message.sender_id).update(unread_count=F("unread_count") + 1)

    def unread_for(self, user):
        membership = self.memberships.filter(user=user).first()
        return membership.unread_count if membership else 0


class Participant(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_memberships",
    )
    unread_count = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["conversation", "user"], name="unique_conversation_participant"),
        ]

    def __str__(self):
        return f"{self.user_id} in {self.conversation_id}"


class Message(models.Model):
    TYPE_TEXT = "text"
    TYPE_OFFER = "offer"
    TYPE_SYSTEM = "system"

    TYPE_CHOICES = [
        (TYPE_TEXT, "Text"),
        (TYPE_OFFER, "Offer"),
        (TYPE_SYSTEM, "System"),
    ]

    OFFER_PENDING = "pending"
    OFFER_ACCEPTED = "accepted"
    OFFER_REJECTED = "rejected"
    OFFER_COUNTERED = "countered"

    OFFER_STATUS_CHOICES = [
        (OFFER_PENDING, "Pending"),
        (OFFER_ACCEPTED, "Accepted"),
        (OFFER_REJECTED, "Rejected"),
        (OFFER_COUNTERED, "Countered"),
    ]

    MAX_LENGTH = 2000

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
    )
    content = models.TextField(max_length=MAX_LENGTH, blank=True)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_TEXT)

    # Set on offer messages only
    offer_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    offer_artwork = models.ForeignKey(
        "gallery.Artwork",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    offer_status = models.CharField(max_length=16, choices=OFFER_STATUS_CHOICES, blank=True)

    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="MessageReceipt",
        related_name="read_messages",
    )
    # Hidden by moderation
    is_deleted = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "pk"]
        indexes = [
            models.Index(fields=["conversation", "created_at"], name="message_conversation_idx"),
        ]

    def __str__(self):
        return f"{self.type} message {self.pk} in {self.conversation_id}"


class MessageReceipt(models.Model):
    message = models.ForeignKey(Message, on_delete=models.CASCADE, related_name="receipts")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="+")
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["message", "user"], name="unique_message_receipt"),
        ]
