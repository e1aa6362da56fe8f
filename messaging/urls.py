from django.urls import path

from . import api

urlpatterns = [
    path("conversations", api.ConversationListView.as_view(), name="conversations-list"),
    path("conversations/unread/count", api.UnreadCountView.as_view(), name="conversations-unread"),
    path("conversations/<int:conversation_id>", api.ConversationDetailView.as_view(), name="conversations-detail"),
    path(
        "conversations/<int:conversation_id>/messages",
        api.MessageListView.as_view(),
        name="conversations-messages",
    ),
    path("conversations/<int:conversation_id>/read", api.MarkReadView.as_view(), name="conversations-read"),
    path("conversations/<int:conversation_id>/offer", api.OfferView.as_view(), name="conversations-offer"),
    path(
        "conversations/<int:conversation_id>/offer/<int:offer_id>",
        api.OfferResponseView.as_view(),
        name="conversations-offer-response",
    ),
]
