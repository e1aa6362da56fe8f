from django.contrib import admin

from .models import Conversation, Message, Participant


class ParticipantInline(admin.TabularInline):
    model = Participant
    extra = 0


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("id", "artwork", "status", "negotiation_status", "last_message_at")
    list_filter = ("status", "negotiation_status")
    search_fields = ("participants__username", "artwork__title")
    inlines = [ParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "conversation", "sender", "type", "offer_status", "is_deleted", "created_at")
    list_filter = ("type", "offer_status", "is_deleted")
    search_fields = ("content", "sender__username")
