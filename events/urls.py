from django.urls import path

from . import api

urlpatterns = [
    path("events", api.EventListView.as_view(), name="events-list"),
    path("events/artist/<int:artist_id>", api.ArtistEventsView.as_view(), name="events-by-artist"),
    path("events/<int:event_id>", api.EventDetailView.as_view(), name="events-detail"),
    path("events/<int:event_id>/attend", api.AttendEventView.as_view(), name="events-attend"),
    path("events/<int:event_id>/attendees", api.EventAttendeesView.as_view(), name="events-attendees"),
]
